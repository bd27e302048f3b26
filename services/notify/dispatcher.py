"""Best-effort, deduplicated delivery of operator alerts."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Set

from models.signal_models import InterventionTrigger
from services.notify.alerts import AlertKind, build_alert
from services.notify.dedupe import DedupeRegistry
from services.notify.webhook import AlertOutbox, WebhookClient

LOGGER = logging.getLogger(__name__)


class NotificationDispatcher:
    """Format alerts, suppress repeats and push them to the chat-ops webhook.

    A failed delivery is recorded in the outbox and still reported as
    handled: alert problems must never reach the visitor's chat.
    """

    def __init__(
        self,
        webhook: WebhookClient,
        dedupe: Optional[DedupeRegistry] = None,
        outbox: Optional[AlertOutbox] = None,
        *,
        site_url: str = "",
    ) -> None:
        self.webhook = webhook
        self.dedupe = dedupe or DedupeRegistry()
        self.outbox = outbox or AlertOutbox()
        self.site_url = site_url
        self._pending: Set[asyncio.Task] = set()

    async def dispatch(self, kind: AlertKind, session_id: str, payload: Mapping[str, Any]) -> bool:
        """Send one alert.

        Returns:
            True when the alert was delivered or logged locally, False when
            it was suppressed as a repeat for this session.
        """
        try:
            claimed = self._claim(kind, session_id, payload)
        except ValueError as exc:
            LOGGER.error("Dropping %s alert for %s with bad payload: %s", kind.value, session_id, exc)
            return False
        if not claimed:
            LOGGER.debug("Suppressed repeat %s alert for %s", kind.value, session_id)
            return False

        try:
            message = build_alert(kind, session_id, payload, at=datetime.now(timezone.utc), site_url=self.site_url)
        except Exception as exc:
            LOGGER.error("Could not format %s alert for %s: %s", kind.value, session_id, exc)
            await self.outbox.record({"kind": kind.value, "session_id": session_id, "error": str(exc)})
            return True

        delivered = await self.webhook.post(message)
        if not delivered:
            await self.outbox.record({"kind": kind.value, "session_id": session_id, "text": message["text"]})
        return True

    def dispatch_later(self, kind: AlertKind, session_id: str, payload: Mapping[str, Any]) -> asyncio.Task:
        """Fire-and-forget variant; the task is kept referenced until it finishes."""
        task = asyncio.create_task(self.dispatch(kind, session_id, dict(payload)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every fire-and-forget alert started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _claim(self, kind: AlertKind, session_id: str, payload: Mapping[str, Any]) -> bool:
        if kind is AlertKind.FIRST_QUESTION:
            return self.dedupe.claim_first_turn(session_id)
        if kind is AlertKind.INTERVENTION:
            trigger = InterventionTrigger(payload.get("trigger") or InterventionTrigger.NONE)
            if payload.get("auto_escalated"):
                return self.dedupe.claim_escalation_alert(session_id, trigger)
            return self.dedupe.claim_trigger(session_id, trigger)
        if kind is AlertKind.HOT_LEAD:
            return self.dedupe.claim_hot_lead(session_id)
        return self.dedupe.claim_prediction(session_id, str(payload.get("prediction") or ""))


def recent_for_alert(history, limit: int = 5) -> list:
    """Convert utterances to plain dicts for alert payloads."""
    return [{"role": m.role, "content": m.content} for m in list(history)[-limit:]]


def intervention_payload(
    trigger: InterventionTrigger,
    history,
    declared_context: Optional[str],
    auto_escalated: bool,
) -> Dict[str, Any]:
    return {
        "trigger": trigger.value,
        "recent_messages": recent_for_alert(history),
        "declared_context": declared_context,
        "auto_escalated": auto_escalated,
    }
