"""Inbound chat-ops events: verification, filtering and command dispatch.

Handles:
- url_verification (challenge echoed back, no session effect)
- event_callback -> message events carrying an operator command
- slash-command form payloads (`command=/join&text=ID`)

Every other event is ignored. Nothing here raises to the caller: the
chat-ops tool retries on failure, so the endpoint always acknowledges.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from services.operator.actions import ActionResult, OperatorActions
from services.operator.commands import CommandKind, OperatorCommand, parse_command_text, parse_slash_command

LOGGER = logging.getLogger(__name__)

SIGNATURE_WINDOW_SECONDS = 300


@dataclass
class ChannelOutcome:
    challenge: Optional[str] = None
    command: Optional[OperatorCommand] = None
    result: Optional[ActionResult] = None
    ignored_reason: Optional[str] = None


class CommandChannel:
    def __init__(self, actions: OperatorActions, signing_secret: str = "", clock=time.time) -> None:
        self.actions = actions
        self.signing_secret = signing_secret
        self.clock = clock

    def verify_signature(self, raw_body: bytes, timestamp: Optional[str], signature: Optional[str]) -> bool:
        """Check `v0=HMAC_SHA256(secret, "v0:{timestamp}:{body}")`.

        Always True when no signing secret is configured.
        """
        if not self.signing_secret:
            return True
        if not timestamp or not signature:
            return False
        try:
            ts = int(timestamp)
        except (ValueError, TypeError):
            return False
        if abs(self.clock() - ts) > SIGNATURE_WINDOW_SECONDS:
            return False

        basestring = f"v0:{timestamp}:{raw_body.decode('utf-8', errors='replace')}"
        computed = "v0=" + hmac.new(
            self.signing_secret.encode("utf-8"),
            basestring.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(computed, signature)

    async def handle_event(self, payload: Mapping[str, Any]) -> ChannelOutcome:
        payload_type = payload.get("type", "")
        if payload_type == "url_verification":
            return ChannelOutcome(challenge=str(payload.get("challenge", "")))
        if payload_type != "event_callback":
            return self._ignore(f"unsupported payload type {payload_type!r}")

        event = payload.get("event") or {}
        if not isinstance(event, Mapping):
            return self._ignore("event is not an object")
        if event.get("type") != "message":
            return self._ignore(f"event type {event.get('type')!r}")
        # Our own alerts echo back as bot messages
        if event.get("bot_id") or event.get("subtype"):
            return self._ignore("bot or system message")

        command = parse_command_text(event.get("text"))
        if command is None:
            return self._ignore("message not addressed to a session")
        return await self.apply(command)

    async def handle_slash_command(self, form: Mapping[str, Any]) -> ChannelOutcome:
        command = parse_slash_command(form.get("command"), form.get("text"))
        if command is None:
            return self._ignore(f"unrecognized slash command {form.get('command')!r}")
        return await self.apply(command)

    async def apply(self, command: OperatorCommand) -> ChannelOutcome:
        try:
            if command.kind is CommandKind.JOIN:
                result = await self.actions.join(command.session_id)
            elif command.kind is CommandKind.LEAVE:
                result = await self.actions.leave(command.session_id)
            elif command.kind is CommandKind.TYPING:
                result = await self.actions.typing(command.session_id, True)
            else:
                result = await self.actions.send(command.session_id, command.text, ghost=command.ghost)
        except Exception as exc:
            LOGGER.error("Operator command %s for %s failed: %s", command.kind.value, command.session_id, exc)
            return ChannelOutcome(command=command, ignored_reason=str(exc))

        if not result.ok:
            LOGGER.warning("Operator command %s for %s was not stored", command.kind.value, command.session_id)
        return ChannelOutcome(command=command, result=result)

    @staticmethod
    def _ignore(reason: str) -> ChannelOutcome:
        LOGGER.debug("Ignoring chat-ops event: %s", reason)
        return ChannelOutcome(ignored_reason=reason)
