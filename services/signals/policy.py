"""Escalation policy: map a trigger and the conversation shape to an action."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

from models.signal_models import EscalationAction, InterventionTrigger, PolicyContext

AUTO_ESCALATE_TRIGGERS: FrozenSet[InterventionTrigger] = frozenset(
    {
        InterventionTrigger.AVAILABILITY_QUESTION,
        InterventionTrigger.SALARY_QUESTION,
        InterventionTrigger.RESUME_REQUEST,
        InterventionTrigger.CONTACT_REQUEST,
        InterventionTrigger.HIGH_INTEREST,
    }
)

SUGGEST_TRIGGERS: FrozenSet[InterventionTrigger] = frozenset(
    {
        InterventionTrigger.AVAILABILITY_QUESTION,
        InterventionTrigger.SALARY_QUESTION,
        InterventionTrigger.HIGH_INTEREST,
    }
)


@dataclass(frozen=True)
class EscalationPolicy:
    """Stateless decision table.

    With `auto_escalate=False` the policy never returns AUTO_ESCALATE, which
    leaves SUGGEST_CHANNEL_SWITCH as the strongest outcome.
    """

    auto_escalate: bool = True
    auto_triggers: FrozenSet[InterventionTrigger] = AUTO_ESCALATE_TRIGGERS
    suggest_triggers: FrozenSet[InterventionTrigger] = SUGGEST_TRIGGERS
    recruiter_auto_turn: int = 3
    engagement_floor: int = 7
    technical_auto_turn: int = 5
    recruiter_suggest_window: Tuple[int, int] = field(default=(5, 7))

    def decide(self, trigger: InterventionTrigger, context: PolicyContext) -> EscalationAction:
        """Return the action for this turn. Same inputs always give the same action."""
        if self.auto_escalate and self._should_auto_escalate(trigger, context):
            return EscalationAction.AUTO_ESCALATE
        if self._should_suggest(trigger, context):
            return EscalationAction.SUGGEST_CHANNEL_SWITCH
        if trigger is not InterventionTrigger.NONE:
            return EscalationAction.NOTIFY_ONLY
        return EscalationAction.NONE

    def _should_auto_escalate(self, trigger: InterventionTrigger, context: PolicyContext) -> bool:
        if trigger in self.auto_triggers:
            return True
        if context.is_recruiter_declared and context.turn_index >= self.recruiter_auto_turn:
            return True
        if context.turn_index >= self.engagement_floor:
            return True
        return trigger is InterventionTrigger.DEEP_TECHNICAL and context.turn_index >= self.technical_auto_turn

    def _should_suggest(self, trigger: InterventionTrigger, context: PolicyContext) -> bool:
        low, high = self.recruiter_suggest_window
        if context.is_recruiter_declared and low <= context.turn_index <= high:
            return True
        return trigger in self.suggest_triggers


DEFAULT_POLICY = EscalationPolicy()


def decide(trigger: InterventionTrigger, context: PolicyContext) -> EscalationAction:
    return DEFAULT_POLICY.decide(trigger, context)
