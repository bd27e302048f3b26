"""Operator-side effects shared by the command channel and the admin console."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from models.session_models import Role
from services.live.store import LiveStore

LOGGER = logging.getLogger(__name__)

GHOST_PREFIX = "ai:"


def greeting_for(operator_name: str) -> str:
    return f"Hi, this is {operator_name} joining the conversation in person. How can I help?"


@dataclass
class ActionResult:
    session_id: str
    ok: bool
    is_live: bool
    message_id: Optional[int] = None
    changed: bool = False

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "ok": self.ok,
            "is_live": self.is_live,
            "message_id": self.message_id,
            "changed": self.changed,
        }


class OperatorActions:
    """Join, leave, reply and typing against the live store."""

    def __init__(self, store: LiveStore, operator_name: str = "the operator") -> None:
        self.store = store
        self.greeting = greeting_for(operator_name)

    async def join(self, session_id: str) -> ActionResult:
        """Take over a session and greet the visitor.

        Joining an already-live session changes nothing, so a redelivered
        join does not post a second greeting.
        """
        current = await self.store.get_live(session_id)
        if current.is_live:
            return ActionResult(session_id=session_id, ok=True, is_live=True)
        if not await self.store.set_live(session_id, True):
            return ActionResult(session_id=session_id, ok=False, is_live=False)
        message_id = await self.store.append_message(session_id, Role.OPERATOR, self.greeting)
        LOGGER.info("Operator joined session %s", session_id)
        return ActionResult(session_id=session_id, ok=message_id is not None, is_live=True, message_id=message_id, changed=True)

    async def leave(self, session_id: str) -> ActionResult:
        current = await self.store.get_live(session_id)
        ok = await self.store.set_live(session_id, False)
        if ok:
            await self.store.set_typing(session_id, False)
            LOGGER.info("Operator left session %s", session_id)
        return ActionResult(session_id=session_id, ok=ok, is_live=not ok and current.is_live, changed=ok and current.is_live)

    async def send(self, session_id: str, content: str, *, ghost: bool = False) -> ActionResult:
        """Re-assert live mode, then append an operator message.

        Redelivery of the same text appends it again: the chat-ops tool gives
        no key that would tell a retry from an operator repeating themselves.
        """
        content = content.strip()
        if not content:
            raise ValueError("Operator message must not be empty.")
        current = await self.store.get_live(session_id)
        changed = False
        if not current.is_live:
            changed = await self.store.set_live(session_id, True)
            if not changed:
                return ActionResult(session_id=session_id, ok=False, is_live=False)
        body = f"{GHOST_PREFIX}{content}" if ghost else content
        message_id = await self.store.append_message(session_id, Role.OPERATOR, body)
        await self.store.set_typing(session_id, False)
        return ActionResult(session_id=session_id, ok=message_id is not None, is_live=True, message_id=message_id, changed=changed)

    async def typing(self, session_id: str, is_typing: bool = True) -> ActionResult:
        ok = await self.store.set_typing(session_id, is_typing)
        current = await self.store.get_live(session_id)
        return ActionResult(session_id=session_id, ok=ok, is_live=current.is_live)
