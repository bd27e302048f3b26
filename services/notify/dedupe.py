"""Per-session memory of which alerts were already sent.

Records live as long as the registry instance, which the application keeps
for the process lifetime. That bounds alerts to at most one per trigger
class per session, not a global exactly-once guarantee.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from models.signal_models import InterventionTrigger


@dataclass
class DedupeRecord:
    session_id: str
    has_notified_first_turn: bool = False
    last_trigger_sent: Optional[InterventionTrigger] = None
    triggers_sent: Set[InterventionTrigger] = field(default_factory=set)
    predictions_sent: Set[str] = field(default_factory=set)
    has_notified_hot_lead: bool = False
    has_auto_escalated: bool = False
    has_notified_escalation: bool = False
    has_suggested_switch: bool = False


class DedupeRegistry:
    """Keyed store of `DedupeRecord`s.

    Subclass and override `record`/`forget` to back it with something
    longer-lived than process memory.
    """

    def __init__(self) -> None:
        self._records: Dict[str, DedupeRecord] = {}

    def record(self, session_id: str) -> DedupeRecord:
        """Return the record for `session_id`, creating it on first use."""
        rec = self._records.get(session_id)
        if rec is None:
            rec = DedupeRecord(session_id=session_id)
            self._records[session_id] = rec
        return rec

    def forget(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def claim_first_turn(self, session_id: str) -> bool:
        """Mark the first-question alert as sent; False if it already was."""
        rec = self.record(session_id)
        if rec.has_notified_first_turn:
            return False
        rec.has_notified_first_turn = True
        return True

    def claim_trigger(self, session_id: str, trigger: InterventionTrigger) -> bool:
        rec = self.record(session_id)
        if trigger in rec.triggers_sent:
            return False
        rec.triggers_sent.add(trigger)
        rec.last_trigger_sent = trigger
        return True

    def claim_escalation_alert(self, session_id: str, trigger: InterventionTrigger) -> bool:
        """Claim the one auto-escalated alert. Earlier alerts for the same trigger do not block it."""
        rec = self.record(session_id)
        if rec.has_notified_escalation:
            return False
        rec.has_notified_escalation = True
        rec.triggers_sent.add(trigger)
        rec.last_trigger_sent = trigger
        return True

    def claim_prediction(self, session_id: str, signal: str) -> bool:
        rec = self.record(session_id)
        if signal in rec.predictions_sent:
            return False
        rec.predictions_sent.add(signal)
        return True

    def claim_hot_lead(self, session_id: str) -> bool:
        rec = self.record(session_id)
        if rec.has_notified_hot_lead:
            return False
        rec.has_notified_hot_lead = True
        return True

    def claim_auto_escalation(self, session_id: str) -> bool:
        rec = self.record(session_id)
        if rec.has_auto_escalated:
            return False
        rec.has_auto_escalated = True
        return True

    def claim_suggestion(self, session_id: str) -> bool:
        rec = self.record(session_id)
        if rec.has_suggested_switch:
            return False
        rec.has_suggested_switch = True
        return True

    def __len__(self) -> int:
        return len(self._records)
