"""Session/message store shared by the visitor, the AI path and the operator.

`LiveStore` wraps `SessionDAL` with change subscriptions and the failure
contract every caller relies on: reads that fail return safe defaults
(not live, no messages) and writes that fail are logged and reported as a
falsy return value instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional

from dal.session_dal import SessionDAL
from models.session_models import (
	ChatMessage,
	LiveState,
	Role,
	SessionRecord,
	SessionSummary,
	TypingState,
	now_ms,
)
from services.live.broker import ChangeBroker, Listener, Topic, deliver

LOGGER = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class LiveStore:
	"""Get/set-overwrite, append and change-subscription over the session tables."""

	def __init__(self, dal: SessionDAL, broker: Optional[ChangeBroker] = None, clock=time.time) -> None:
		self.dal = dal
		self.broker = broker or ChangeBroker()
		self.clock = clock
		self._append_lock = asyncio.Lock()

	def now(self) -> int:
		return now_ms(self.clock)

	async def ensure_session(self, session_id: str, declared_context: Optional[str] = None) -> Optional[SessionRecord]:
		"""Create the session if it does not exist yet; None if the store is down."""
		context = declared_context.strip() if declared_context and declared_context.strip() else None
		try:
			return await self.dal.upsert_session(session_id, context, self.now())
		except Exception as exc:
			LOGGER.warning("Store unavailable creating session %s: %s", session_id, exc)
			return None

	async def get_session(self, session_id: str) -> Optional[SessionRecord]:
		try:
			return await self.dal.get_session(session_id)
		except Exception as exc:
			LOGGER.warning("Store unavailable reading session %s: %s", session_id, exc)
			return None

	async def get_live(self, session_id: str) -> LiveState:
		"""Return the live flag, defaulting to not-live when unknown or unreachable."""
		try:
			state = await self.dal.get_live(session_id)
		except Exception as exc:
			LOGGER.warning("Store unavailable reading live flag for %s: %s", session_id, exc)
			state = None
		return state or LiveState(session_id=session_id)

	async def set_live(self, session_id: str, is_live: bool) -> bool:
		"""Overwrite the live flag. Last writer wins; no merge with concurrent writers.

		Re-asserting the current value keeps the original join time.
		"""
		current = await self.get_live(session_id)
		at_ms = self.now()
		joined_at = None
		if is_live:
			joined_at = current.operator_joined_at if current.is_live and current.operator_joined_at else at_ms
		state = LiveState(session_id=session_id, is_live=is_live, operator_joined_at=joined_at, updated_at=at_ms)
		try:
			await self.dal.write_live(state)
		except Exception as exc:
			LOGGER.warning("Store unavailable setting live=%s for %s: %s", is_live, session_id, exc)
			return False
		await self.broker.publish(Topic.LIVE, session_id, state)
		return True

	async def append_message(self, session_id: str, role: Role, content: str) -> Optional[int]:
		"""Append to the session log and return the message id, or None on failure."""
		message = await self.append(session_id, role, content)
		return message.id if message else None

	async def append(self, session_id: str, role: Role, content: str) -> Optional[ChatMessage]:
		try:
			async with self._append_lock:
				message = await self.dal.insert_message(session_id, Role(role), content, self.now())
		except Exception as exc:
			LOGGER.warning("Store unavailable appending %s message to %s: %s", role, session_id, exc)
			return None
		await self.broker.publish(Topic.MESSAGES, session_id, message)
		return message

	async def list_messages(
		self,
		session_id: str,
		*,
		after_timestamp: Optional[int] = None,
		limit: Optional[int] = None,
	) -> List[ChatMessage]:
		try:
			return await self.dal.list_messages(session_id, after_timestamp=after_timestamp, limit=limit)
		except Exception as exc:
			LOGGER.warning("Store unavailable listing messages for %s: %s", session_id, exc)
			return []

	async def list_sessions(self, active_within_seconds: float = 1800, limit: int = 100) -> List[SessionSummary]:
		"""Recent sessions for the console, newest activity first."""
		since = self.now() - int(active_within_seconds * 1000)
		try:
			return await self.dal.list_session_summaries(since, limit)
		except Exception as exc:
			LOGGER.warning("Store unavailable listing sessions: %s", exc)
			return []

	async def set_typing(self, session_id: str, is_typing: bool) -> bool:
		state = TypingState(session_id=session_id, is_typing=is_typing, updated_at=self.now())
		try:
			await self.dal.write_typing(state)
		except Exception as exc:
			LOGGER.warning("Store unavailable setting typing for %s: %s", session_id, exc)
			return False
		await self.broker.publish(Topic.TYPING, session_id, state)
		return True

	async def get_typing(self, session_id: str) -> TypingState:
		try:
			state = await self.dal.get_typing(session_id)
		except Exception as exc:
			LOGGER.warning("Store unavailable reading typing for %s: %s", session_id, exc)
			state = None
		return state or TypingState(session_id=session_id)

	async def stream_messages(self, session_id: str, on_change: Listener, *, replay: bool = False) -> Unsubscribe:
		"""Push every appended message, including the subscriber's own writes.

		With `replay=True` the existing log is delivered first, in order.
		"""
		unsubscribe = self.broker.subscribe(Topic.MESSAGES, session_id, on_change)
		if replay:
			for message in await self.list_messages(session_id):
				await deliver(on_change, message)
		return unsubscribe

	async def stream_live(self, session_id: str, on_change: Listener) -> Unsubscribe:
		"""Push the current live state immediately, then every change."""
		unsubscribe = self.broker.subscribe(Topic.LIVE, session_id, on_change)
		await deliver(on_change, await self.get_live(session_id))
		return unsubscribe

	async def stream_typing(self, session_id: str, on_change: Listener) -> Unsubscribe:
		unsubscribe = self.broker.subscribe(Topic.TYPING, session_id, on_change)
		await deliver(on_change, await self.get_typing(session_id))
		return unsubscribe

	async def transcript(self, session_id: str, limit: int = 15) -> str:
		"""Return the most recent messages as a text transcript."""
		messages = await self.list_messages(session_id, limit=limit)
		return "\n".join(f"{msg.role.value.upper()}: {msg.content}" for msg in messages)
