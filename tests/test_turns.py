"""End-to-end visitor turn scenarios."""

import asyncio

import pytest

from conftest import FakeResponder, FirstLiveWriteFailsDAL, FlakyAppendDAL
from models.session_models import Role
from models.signal_models import EscalationAction, InterventionTrigger, Utterance
from services.ai.responder import ResponderError
from services.chat.turns import VisitorTurnProcessor, generate_session_id
from services.live.store import LiveStore
from services.signals.policy import EscalationPolicy

GENERIC = [
    "Hello there",
    "Nice site",
    "I like the colors",
    "Thanks for the info",
    "Good to know",
    "Do you enjoy hiking?",
    "What music do you like?",
    "Have a nice day",
]


async def _converse(processor, session_id, texts, declared_context=None):
    history = []
    results = []
    for text in texts:
        result = await processor.handle_text_turn(session_id, text, list(history), declared_context)
        results.append(result)
        history.append(Utterance("user", text))
        if result.reply:
            history.append(Utterance("ai", result.reply))
    await processor.dispatcher.wait_idle()
    return results


def _headers(webhook):
    return [call["blocks"][0]["text"]["text"] for call in webhook.calls]


class TestScenarioA:
    def test_availability_question_auto_escalates(self, store, dispatcher, webhook, responder):
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        texts = ["Hi, nice portfolio", "What's your availability to start?", "Are you there?"]
        results = asyncio.run(_converse(processor, "S-A", texts))

        second = results[1]
        assert second.trigger is InterventionTrigger.AVAILABILITY_QUESTION
        assert second.action is EscalationAction.AUTO_ESCALATE
        assert second.escalated is True
        assert second.routed_to == "ai"
        assert asyncio.run(store.get_live("S-A")).is_live is True

        assert _headers(webhook).count("Auto-escalated: session is live") == 1
        assert results[2].routed_to == "operator"
        assert results[2].reply is None
        assert len(responder.calls) == 2

    def test_first_question_alert_once(self, store, dispatcher, webhook, responder):
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        asyncio.run(_converse(processor, "S-1", ["Hello there", "Nice site"]))
        assert _headers(webhook).count("New visitor question") == 1


class TestScenarioB:
    def test_engagement_floor_escalates_at_turn_seven(self, store, dispatcher, webhook, responder):
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        results = asyncio.run(_converse(processor, "S-B", GENERIC))

        assert all(r.trigger is InterventionTrigger.NONE for r in results[:7])
        assert [r.action for r in results[:6]] == [EscalationAction.NONE] * 6
        assert results[6].action is EscalationAction.AUTO_ESCALATE
        assert results[6].escalated is True
        assert results[7].routed_to == "operator"
        assert _headers(webhook).count("Auto-escalated: session is live") == 1


class TestEscalationOnce:
    def test_operator_leaving_is_not_overridden(self, store, dispatcher, responder, actions):
        processor = VisitorTurnProcessor(store, dispatcher, responder)

        async def scenario():
            await _converse(processor, "S1", ["Can I see your resume?"])
            await actions.leave("S1")
            return await processor.handle_text_turn(
                "S1", "And your email?", [Utterance("user", "Can I see your resume?")]
            )

        result = asyncio.run(scenario())
        assert result.action is EscalationAction.AUTO_ESCALATE
        assert result.escalated is False
        assert result.routed_to == "ai"

    def test_escalation_alert_sent_after_dropped_live_write(self, db_initializer, clock, dispatcher, webhook, responder):
        store = LiveStore(FirstLiveWriteFailsDAL(db_initializer), clock=clock)
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        texts = ["Are you available next month?", "So what is your availability?"]
        results = asyncio.run(_converse(processor, "S1", texts))

        assert [r.escalated for r in results] == [False, True]
        assert asyncio.run(store.get_live("S1")).is_live is True
        headers = _headers(webhook)
        assert headers.count("Intervention moment") == 1
        assert headers.count("Auto-escalated: session is live") == 1


class TestSuggestion:
    def test_suggested_once_when_auto_escalation_disabled(self, store, dispatcher, responder):
        processor = VisitorTurnProcessor(store, dispatcher, responder, EscalationPolicy(auto_escalate=False))
        results = asyncio.run(
            _converse(processor, "S1", ["What is your salary range?", "Is that your hourly rate?"])
        )
        assert [r.action for r in results] == [EscalationAction.SUGGEST_CHANNEL_SWITCH] * 2
        assert [r.suggest_live_chat for r in results] == [True, False]
        assert asyncio.run(store.get_live("S1")).is_live is False


class TestGracefulDegradation:
    def test_append_failure_still_answers(self, db_initializer, clock, dispatcher, responder, caplog):
        store = LiveStore(FlakyAppendDAL(db_initializer), clock=clock)
        processor = VisitorTurnProcessor(store, dispatcher, responder)

        with caplog.at_level("WARNING"):
            results = asyncio.run(_converse(processor, "S1", ["Hello there"]))

        assert results[0].reply == responder.reply_text
        assert "Store unavailable appending" in caplog.text

    def test_detector_failure_is_treated_as_none(self, store, dispatcher, responder, monkeypatch):
        import services.chat.turns as turns

        def explode(*args):
            raise RuntimeError("bad table")

        monkeypatch.setattr(turns, "detect", explode)
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        results = asyncio.run(_converse(processor, "S1", ["Can I see your resume?"]))
        assert results[0].trigger is InterventionTrigger.NONE
        assert results[0].reply == responder.reply_text

    def test_ai_failure_propagates(self, store, dispatcher):
        processor = VisitorTurnProcessor(store, dispatcher, FakeResponder(fail=True))
        with pytest.raises(ResponderError):
            asyncio.run(processor.handle_text_turn("S1", "Hello there"))
        messages = asyncio.run(store.list_messages("S1"))
        assert [m.role for m in messages] == [Role.VISITOR]

    def test_empty_text_rejected(self, store, dispatcher, responder):
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        with pytest.raises(ValueError):
            asyncio.run(processor.handle_text_turn("S1", "   "))


class TestVoiceTurns:
    def test_hot_lead_checked_every_third_visitor_turn(self, store, dispatcher, webhook, responder):
        processor = VisitorTurnProcessor(store, dispatcher, responder)
        lines = [
            ("user", "We are hiring a senior engineer"),
            ("ai", "Tell me more"),
            ("user", "Could we schedule an interview?"),
            ("ai", "Sure"),
            ("user", "What salary would you expect?"),
        ]

        async def scenario():
            history = []
            results = []
            for role, text in lines:
                results.append(await processor.handle_voice_turn("V1", role, text, list(history)))
                history.append(Utterance(role, text))
            await dispatcher.wait_idle()
            return results

        results = asyncio.run(scenario())
        assert [r.visitor_turns for r in results] == [1, 1, 2, 2, 3]
        assert all(r.intent is None for r in results[:4])
        assert results[4].intent.intent.value == "hot_lead"
        assert _headers(webhook) == ["Hot lead detected"]
        roles = [m.role for m in asyncio.run(store.list_messages("V1"))]
        assert roles == [Role.VISITOR, Role.AI, Role.VISITOR, Role.AI, Role.VISITOR]


def test_generated_session_ids():
    session_id = generate_session_id(lambda: 1_700_000_000.0)
    prefix, suffix = session_id.split("-")
    assert int(prefix, 36) == 1_700_000_000_000
    assert len(suffix) == 6
    assert session_id == session_id.upper()
    assert generate_session_id() != generate_session_id()
