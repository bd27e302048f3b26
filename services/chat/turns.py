"""Visitor turn handling: route to the AI or the operator, and escalate."""

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from models.session_models import Role
from models.signal_models import (
    ConversationContext,
    EscalationAction,
    Intent,
    IntentAnalysis,
    InterventionTrigger,
    Utterance,
)
from services.ai.responder import PersonaResponder
from services.live.store import LiveStore
from services.notify.alerts import AlertKind
from services.notify.dispatcher import NotificationDispatcher, intervention_payload, recent_for_alert
from services.signals.detector import VISITOR_ROLES, classify_intent, detect, predict_signal
from services.signals.policy import DEFAULT_POLICY, EscalationPolicy

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

RECENT_WINDOW = 10
HOT_LEAD_EVERY = 3
_BASE36 = string.digits + string.ascii_uppercase


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_session_id(clock=time.time) -> str:
    """Return an id like `LZ3K9Q2A-4F7XQ1`: base36 milliseconds plus a random suffix."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{_base36(int(clock() * 1000))}-{suffix}"


@dataclass
class TurnResult:
    session_id: str
    routed_to: str
    reply: Optional[str] = None
    trigger: InterventionTrigger = InterventionTrigger.NONE
    action: EscalationAction = EscalationAction.NONE
    escalated: bool = False
    suggest_live_chat: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "routed_to": self.routed_to,
            "reply": self.reply,
            "trigger": self.trigger.value,
            "action": self.action.value,
            "escalated": self.escalated,
            "suggest_live_chat": self.suggest_live_chat,
        }


@dataclass
class VoiceTurnResult:
    session_id: str
    visitor_turns: int
    intent: Optional[IntentAnalysis] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "visitor_turns": self.visitor_turns,
            "intent": self.intent.to_dict() if self.intent else None,
        }


def _guard(label: str, default: T, fn: Callable[..., T], *args: Any) -> T:
    try:
        return fn(*args)
    except Exception as exc:
        LOGGER.error("%s failed, treating as %r: %s", label, default, exc)
        return default


class VisitorTurnProcessor:
    """Run one visitor turn through detection, policy, alerts and the AI.

    The conversation history is owned by the visitor's client and passed in
    with each turn, so a store outage never changes what is detected.
    """

    def __init__(
        self,
        store: LiveStore,
        dispatcher: NotificationDispatcher,
        responder: PersonaResponder,
        policy: EscalationPolicy = DEFAULT_POLICY,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.responder = responder
        self.policy = policy

    async def handle_text_turn(
        self,
        session_id: str,
        text: str,
        history: Sequence[Utterance] = (),
        declared_context: Optional[str] = None,
    ) -> TurnResult:
        text = (text or "").strip()
        if not text:
            raise ValueError("Message text is required.")

        await self.store.ensure_session(session_id, declared_context)
        live = await self.store.get_live(session_id)
        await self.store.append_message(session_id, Role.VISITOR, text)
        if live.is_live:
            return TurnResult(session_id=session_id, routed_to="operator")

        conversation: List[Utterance] = [*history, Utterance(role="user", content=text)]
        context = ConversationContext(
            declared_context=declared_context,
            turn_index=sum(1 for m in conversation if m.role in VISITOR_ROLES),
            recent_messages=conversation[-RECENT_WINDOW:],
        )

        if context.turn_index == 1:
            self.dispatcher.dispatch_later(
                AlertKind.FIRST_QUESTION,
                session_id,
                {"question": text, "declared_context": declared_context},
            )

        trigger = _guard("Signal detection", InterventionTrigger.NONE, detect, text, context)
        prediction = _guard("Signal prediction", None, predict_signal, text, context)
        action = _guard("Escalation policy", EscalationAction.NONE, self.policy.decide, trigger, context.policy_context())

        if prediction:
            self.dispatcher.dispatch_later(
                AlertKind.PREDICTIVE,
                session_id,
                {
                    "prediction": prediction,
                    "recent_messages": recent_for_alert(conversation),
                    "declared_context": declared_context,
                },
            )

        escalated = False
        if action is EscalationAction.AUTO_ESCALATE:
            escalated = await self._escalate(session_id)

        if trigger is not InterventionTrigger.NONE or escalated:
            self.dispatcher.dispatch_later(
                AlertKind.INTERVENTION,
                session_id,
                intervention_payload(trigger, conversation, declared_context, escalated),
            )

        suggest = action is EscalationAction.SUGGEST_CHANNEL_SWITCH and self.dispatcher.dedupe.claim_suggestion(session_id)

        reply = await self.responder.reply(conversation, declared_context=declared_context)
        await self.store.append_message(session_id, Role.AI, reply)
        return TurnResult(
            session_id=session_id,
            routed_to="ai",
            reply=reply,
            trigger=trigger,
            action=action,
            escalated=escalated,
            suggest_live_chat=suggest,
        )

    async def handle_voice_turn(
        self,
        session_id: str,
        role: str,
        transcript: str,
        history: Sequence[Utterance] = (),
        declared_context: Optional[str] = None,
    ) -> VoiceTurnResult:
        """Record one voice transcript; every third visitor turn checks for a hot lead."""
        transcript = (transcript or "").strip()
        if not transcript:
            raise ValueError("Transcript text is required.")
        is_visitor = role in VISITOR_ROLES

        await self.store.ensure_session(session_id, declared_context)
        await self.store.append_message(session_id, Role.VISITOR if is_visitor else Role.AI, transcript)

        conversation = [*history, Utterance(role="user" if is_visitor else "ai", content=transcript)]
        visitor_turns = sum(1 for m in conversation if m.role in VISITOR_ROLES)
        result = VoiceTurnResult(session_id=session_id, visitor_turns=visitor_turns)
        if not is_visitor or visitor_turns % HOT_LEAD_EVERY != 0:
            return result

        analysis = _guard("Intent classification", None, classify_intent, conversation)
        result.intent = analysis
        if analysis is not None and analysis.intent is Intent.HOT_LEAD:
            self.dispatcher.dispatch_later(
                AlertKind.HOT_LEAD,
                session_id,
                {
                    "summary": analysis.summary,
                    "signals": analysis.signals,
                    "recent_messages": recent_for_alert(conversation),
                    "declared_context": declared_context,
                },
            )
        return result

    async def _escalate(self, session_id: str) -> bool:
        """Flip the session live once; an operator leaving later is not overridden."""
        dedupe = self.dispatcher.dedupe
        if not dedupe.claim_auto_escalation(session_id):
            return False
        if await self.store.set_live(session_id, True):
            LOGGER.info("Auto-escalated session %s", session_id)
            return True
        dedupe.record(session_id).has_auto_escalated = False
        return False
