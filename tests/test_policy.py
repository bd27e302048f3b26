"""Tests for the escalation decision table."""

import pytest

from models.signal_models import EscalationAction, InterventionTrigger, PolicyContext
from services.signals.policy import DEFAULT_POLICY, EscalationPolicy, decide

T = InterventionTrigger
A = EscalationAction


@pytest.mark.parametrize("trigger", [T.RESUME_REQUEST, T.CONTACT_REQUEST])
@pytest.mark.parametrize("turn", [1, 2, 3, 5, 7, 12])
def test_resume_and_contact_always_auto_escalate(trigger, turn):
    assert decide(trigger, PolicyContext(turn_index=turn)) is A.AUTO_ESCALATE
    assert decide(trigger, PolicyContext(turn_index=turn, is_recruiter_declared=True)) is A.AUTO_ESCALATE


def test_engagement_floor_without_trigger():
    assert decide(T.NONE, PolicyContext(turn_index=6)) is A.NONE
    assert decide(T.NONE, PolicyContext(turn_index=7)) is A.AUTO_ESCALATE


def test_declared_recruiter_escalates_from_turn_three():
    assert decide(T.NONE, PolicyContext(turn_index=2, is_recruiter_declared=True)) is A.NONE
    assert decide(T.NONE, PolicyContext(turn_index=3, is_recruiter_declared=True)) is A.AUTO_ESCALATE


def test_deep_technical_threshold():
    assert decide(T.DEEP_TECHNICAL, PolicyContext(turn_index=4)) is A.NOTIFY_ONLY
    assert decide(T.DEEP_TECHNICAL, PolicyContext(turn_index=5)) is A.AUTO_ESCALATE


def test_recruiter_detected_is_notify_only_at_low_turns():
    assert decide(T.RECRUITER_DETECTED, PolicyContext(turn_index=1, is_recruiter_declared=True)) is A.NOTIFY_ONLY


def test_same_inputs_same_decision():
    ctx = PolicyContext(turn_index=4)
    assert {decide(T.SALARY_QUESTION, ctx) for _ in range(5)} == {A.AUTO_ESCALATE}


class TestWithoutAutoEscalation:
    policy = EscalationPolicy(auto_escalate=False)

    def test_soft_triggers_suggest_switch(self):
        for trigger in (T.AVAILABILITY_QUESTION, T.SALARY_QUESTION, T.HIGH_INTEREST):
            assert self.policy.decide(trigger, PolicyContext(turn_index=2)) is A.SUGGEST_CHANNEL_SWITCH

    def test_recruiter_window_suggests(self):
        assert self.policy.decide(T.NONE, PolicyContext(turn_index=5, is_recruiter_declared=True)) is A.SUGGEST_CHANNEL_SWITCH
        assert self.policy.decide(T.NONE, PolicyContext(turn_index=7, is_recruiter_declared=True)) is A.SUGGEST_CHANNEL_SWITCH
        assert self.policy.decide(T.NONE, PolicyContext(turn_index=8, is_recruiter_declared=True)) is A.NONE

    def test_other_triggers_notify(self):
        assert self.policy.decide(T.RESUME_REQUEST, PolicyContext(turn_index=9)) is A.NOTIFY_ONLY
        assert self.policy.decide(T.NONE, PolicyContext(turn_index=9)) is A.NONE


def test_default_policy_escalates():
    assert DEFAULT_POLICY.auto_escalate is True
