"""Tests for the pure signal classifiers."""

from models.signal_models import ConversationContext, Intent, InterventionTrigger, Utterance
from services.signals.detector import classify_intent, detect, predict_signal
from services.signals.keywords import SALARY, normalize


def _ctx(turn=1, declared=None, recent=()):
    return ConversationContext(declared_context=declared, turn_index=turn, recent_messages=list(recent))


class TestDetect:
    def test_empty_and_whitespace_are_none(self):
        assert detect("", _ctx()) is InterventionTrigger.NONE
        assert detect("   \n\t", _ctx()) is InterventionTrigger.NONE

    def test_availability_beats_salary(self):
        msg = "What's your availability and what salary do you expect?"
        assert detect(msg, _ctx(turn=3)) is InterventionTrigger.AVAILABILITY_QUESTION

    def test_salary_alone(self):
        assert detect("What salary range are you targeting?", _ctx(turn=3)) is InterventionTrigger.SALARY_QUESTION

    def test_resume_and_contact(self):
        assert detect("Could you send your resume?", _ctx(turn=3)) is InterventionTrigger.RESUME_REQUEST
        assert detect("What's the best email to use?", _ctx(turn=3)) is InterventionTrigger.CONTACT_REQUEST

    def test_high_interest(self):
        assert detect("This sounds like a perfect fit for us", _ctx(turn=3)) is InterventionTrigger.HIGH_INTEREST

    def test_turkish_phrases(self):
        assert detect("Maaş beklentiniz nedir?", _ctx(turn=3)) is InterventionTrigger.SALARY_QUESTION
        assert detect("Özgeçmiş gönderebilir misiniz?", _ctx(turn=3)) is InterventionTrigger.RESUME_REQUEST

    def test_recruiter_context_wins_at_low_turn(self):
        ctx = _ctx(turn=2, declared="Recruiter hiring for a backend role")
        assert detect("What salary do you expect?", ctx) is InterventionTrigger.RECRUITER_DETECTED

    def test_recruiter_context_ignored_after_turn_two(self):
        ctx = _ctx(turn=3, declared="Recruiter hiring for a backend role")
        assert detect("What salary do you expect?", ctx) is InterventionTrigger.SALARY_QUESTION

    def test_word_boundaries(self):
        assert detect("That was an accurate description", _ctx(turn=3)) is InterventionTrigger.NONE

    def test_deep_technical_needs_turn_and_two_technical_messages(self):
        recent = [
            Utterance("user", "How does the architecture handle load?"),
            Utterance("ai", "It uses queues."),
            Utterance("user", "And what about database scalability?"),
        ]
        msg = "And what about database scalability?"
        assert detect(msg, _ctx(turn=5, recent=recent)) is InterventionTrigger.DEEP_TECHNICAL
        assert detect(msg, _ctx(turn=4, recent=recent)) is InterventionTrigger.NONE
        assert detect(msg, _ctx(turn=5, recent=recent[-1:])) is InterventionTrigger.NONE

    def test_generic_chatter_is_none(self):
        for msg in ("Hello there", "Nice site", "I like the colors", "Thanks for the info"):
            assert detect(msg, _ctx(turn=4)) is InterventionTrigger.NONE


class TestPredictSignal:
    def test_leading_phrases(self):
        assert predict_signal("We're looking for someone senior", _ctx()) == "about to describe requirements"
        assert predict_signal("How much would a project cost", _ctx()) == "about to ask compensation"
        assert predict_signal("Can you explain the keyboard project", _ctx()) == "deep dive question coming"

    def test_long_message_with_history(self):
        long_msg = "x " * 60
        recent = [Utterance("user", "hi"), Utterance("ai", "hello")]
        assert predict_signal(long_msg, _ctx(recent=recent)) == "high engagement - detailed question"
        assert predict_signal(long_msg, _ctx()) is None

    def test_nothing_to_predict(self):
        assert predict_signal("", _ctx()) is None
        assert predict_signal("Nice site", _ctx()) is None


class TestClassifyIntent:
    def test_needs_two_visitor_messages(self):
        result = classify_intent([Utterance("user", "We are hiring a senior engineer")])
        assert result.intent is Intent.CASUAL
        assert result.summary == "Not enough conversation to analyze"

    def test_hot_lead(self):
        messages = [
            Utterance("user", "We are hiring for a senior position"),
            Utterance("ai", "Great!"),
            Utterance("user", "Could we schedule an interview call?"),
        ]
        result = classify_intent(messages)
        assert result.intent is Intent.HOT_LEAD
        assert "Hiring language detected" in result.signals
        assert result.confidence <= 85

    def test_interested(self):
        messages = [Utterance("user", "Which project did you ship with python?"), Utterance("user", "Nice")]
        result = classify_intent(messages)
        assert result.intent is Intent.INTERESTED

    def test_casual(self):
        result = classify_intent([Utterance("user", "hello"), Utterance("user", "bye")])
        assert result.intent is Intent.CASUAL
        assert result.summary == "General browsing"


def test_normalize_folds_case_and_apostrophes():
    assert normalize("WHAT’S") == "what's"
    assert SALARY.first_match("Your RATE?") == "rate"
