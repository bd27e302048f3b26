from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence


class InterventionTrigger(str, Enum):
    """Closed set of per-turn signals worth a human's attention."""

    RECRUITER_DETECTED = "recruiter_detected"
    AVAILABILITY_QUESTION = "availability_question"
    SALARY_QUESTION = "salary_question"
    RESUME_REQUEST = "resume_request"
    CONTACT_REQUEST = "contact_request"
    HIGH_INTEREST = "high_interest"
    DEEP_TECHNICAL = "deep_technical"
    PREDICTIVE_SIGNAL = "predictive_signal"
    NONE = "none"


class EscalationAction(str, Enum):
    """What the caller should do after a visitor turn."""

    NONE = "none"
    SUGGEST_CHANNEL_SWITCH = "suggestChannelSwitch"
    NOTIFY_ONLY = "notifyOnly"
    AUTO_ESCALATE = "autoEscalate"


class Intent(str, Enum):
    """Coarse visitor intent used for hot-lead alerts."""

    CASUAL = "casual"
    INTERESTED = "interested"
    HOT_LEAD = "hot_lead"


RECRUITER_MARKERS = ("recruiter", "hiring", "job")


@dataclass(frozen=True)
class Utterance:
    """Role/content pair as seen by the detector."""

    role: str
    content: str


@dataclass
class ConversationContext:
    """Input to the detector for a single visitor turn.

    Attributes:
        declared_context: Free-text hint supplied by the visitor.
        turn_index: 1-based count of visitor turns including the current one.
        recent_messages: Most recent utterances, current turn included.
    """

    declared_context: Optional[str] = None
    turn_index: int = 0
    recent_messages: Sequence[Utterance] = field(default_factory=list)

    @property
    def is_recruiter_declared(self) -> bool:
        return is_recruiter_context(self.declared_context)

    def policy_context(self) -> "PolicyContext":
        return PolicyContext(turn_index=self.turn_index, is_recruiter_declared=self.is_recruiter_declared)


@dataclass(frozen=True)
class PolicyContext:
    """Conversation shape consumed by the escalation policy."""

    turn_index: int
    is_recruiter_declared: bool = False


@dataclass
class IntentAnalysis:
    intent: Intent
    confidence: float
    signals: List[str] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> dict:
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "signals": list(self.signals),
            "summary": self.summary,
        }


def is_recruiter_context(declared_context: Optional[str]) -> bool:
    """Return True when the visitor declared a hiring-related role."""
    if not declared_context:
        return False
    lowered = declared_context.casefold()
    return any(marker in lowered for marker in RECRUITER_MARKERS)
