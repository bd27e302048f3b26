"""Pure classifiers over visitor text.

Three entry points share the keyword tables in `services.signals.keywords`:

- `detect`: one intervention trigger per visitor turn.
- `predict_signal`: best guess of the visitor's next question, for alerts only.
- `classify_intent`: periodic hot-lead scoring used by the voice path.

None of them perform I/O.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from models.signal_models import (
    ConversationContext,
    Intent,
    IntentAnalysis,
    InterventionTrigger,
    Utterance,
)
from services.signals.keywords import (
    HOT_LEAD_TABLES,
    INTERESTED_TABLES,
    PREDICTIVE_TABLES,
    TECHNICAL,
    TRIGGER_RULES,
)

RECRUITER_MAX_TURN = 2
TECHNICAL_MIN_TURN = 5
TECHNICAL_WINDOW = 5
TECHNICAL_MIN_MESSAGES = 2
LONG_MESSAGE_CHARS = 100
HOT_LEAD_SCORE = 50
INTERESTED_SCORE = 25

VISITOR_ROLES = ("user", "visitor")


def detect(message: str, context: ConversationContext) -> InterventionTrigger:
    """Classify a visitor utterance into at most one intervention trigger.

    Rules are evaluated in fixed priority and the first match wins:
    recruiter context at a low turn index, availability, salary, resume,
    contact, high interest and finally sustained technical depth.
    """
    if not message or not message.strip():
        return InterventionTrigger.NONE

    if context.is_recruiter_declared and context.turn_index <= RECRUITER_MAX_TURN:
        return InterventionTrigger.RECRUITER_DETECTED

    for rule in TRIGGER_RULES:
        if rule.table.matches(message):
            return rule.trigger

    if context.turn_index >= TECHNICAL_MIN_TURN and _technical_count(context.recent_messages) >= TECHNICAL_MIN_MESSAGES:
        return InterventionTrigger.DEEP_TECHNICAL

    return InterventionTrigger.NONE


def predict_signal(message: str, context: ConversationContext) -> Optional[str]:
    """Return a human-readable guess of what the visitor is about to ask."""
    if not message or not message.strip():
        return None
    for table in PREDICTIVE_TABLES:
        if table.matches(message):
            return table.label
    if len(message) > LONG_MESSAGE_CHARS and len(context.recent_messages) >= 2:
        return "high engagement - detailed question"
    return None


def classify_intent(messages: Sequence[Utterance]) -> IntentAnalysis:
    """Score the visitor side of a conversation as casual, interested or hot lead."""
    visitor_messages = [m for m in messages if m.role in VISITOR_ROLES]
    if len(visitor_messages) < 2:
        return IntentAnalysis(
            intent=Intent.CASUAL,
            confidence=100,
            summary="Not enough conversation to analyze",
        )

    all_text = " ".join(m.content for m in visitor_messages)
    signals = []
    score = 0
    for table in (*HOT_LEAD_TABLES, *INTERESTED_TABLES):
        if table.matches(all_text):
            signals.append(table.label)
            score += table.weight

    if len(visitor_messages) >= 4:
        score += 10
        signals.append("Extended conversation")
    if len(visitor_messages) >= 6:
        score += 10
        signals.append("Deep engagement")

    score = min(score, 100)
    if score >= HOT_LEAD_SCORE:
        intent = Intent.HOT_LEAD
    elif score >= INTERESTED_SCORE:
        intent = Intent.INTERESTED
    else:
        intent = Intent.CASUAL

    return IntentAnalysis(
        intent=intent,
        confidence=min(85, 50 + score / 2),
        signals=signals,
        summary=f"Detected: {', '.join(signals[:3])}" if signals else "General browsing",
    )


def _technical_count(recent: Iterable[Utterance]) -> int:
    window = list(recent)[-TECHNICAL_WINDOW:]
    return sum(1 for msg in window if TECHNICAL.matches(msg.content))
