"""Visitor-side live session hook.

Follows the live flag of one session and, while an operator is present,
streams their messages and typing state into a merged timeline. One
instance lives as long as the visitor's page (or websocket) does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from models.session_models import ChatMessage, LiveState, Role, TypingState
from services.live.broker import Listener, deliver
from services.live.store import LiveStore
from services.operator.actions import GHOST_PREFIX

LOGGER = logging.getLogger(__name__)

TYPING_TTL_MS = 3000


@dataclass
class TimelineEntry:
	"""A message as the visitor sees it."""

	role: Role
	content: str
	timestamp: int
	id: Optional[int] = None

	def to_dict(self) -> dict:
		return {"id": self.id, "role": self.role.value, "content": self.content, "timestamp": self.timestamp}


def present(message: ChatMessage) -> TimelineEntry:
	"""Show ghost replies (operator text prefixed `ai:`) as AI messages."""
	if message.role is Role.OPERATOR and message.content.startswith(GHOST_PREFIX):
		return TimelineEntry(Role.AI, message.content[len(GHOST_PREFIX):].strip(), message.timestamp, message.id)
	return TimelineEntry(message.role, message.content, message.timestamp, message.id)


class LiveSessionClient:
	def __init__(
		self,
		store: LiveStore,
		session_id: str,
		*,
		on_operator_joined: Optional[Listener] = None,
		on_operator_message: Optional[Listener] = None,
		on_typing_change: Optional[Listener] = None,
		on_live_change: Optional[Listener] = None,
	) -> None:
		self.store = store
		self.session_id = session_id
		self.on_operator_joined = on_operator_joined
		self.on_operator_message = on_operator_message
		self.on_typing_change = on_typing_change
		self.on_live_change = on_live_change

		self.is_live = False
		self.typing = TypingState(session_id=session_id)
		self.timeline: List[TimelineEntry] = []
		self.mounted = False
		self._announced: Set[str] = set()
		self._seen_ids: Set[int] = set()
		self._stream_start = 0
		self._unsub_live: Optional[Callable[[], None]] = None
		self._unsub_live_streams: List[Callable[[], None]] = []

	async def mount(self) -> None:
		if self.mounted:
			return
		self.mounted = True
		self._unsub_live = await self.store.stream_live(self.session_id, self._handle_live)

	def unmount(self) -> None:
		"""Drop every subscription immediately."""
		self._stop_live_streams()
		if self._unsub_live is not None:
			self._unsub_live()
			self._unsub_live = None
		self.mounted = False
		self.is_live = False

	async def switch_session(self, session_id: str) -> None:
		if session_id == self.session_id:
			return
		self.unmount()
		self.session_id = session_id
		self.typing = TypingState(session_id=session_id)
		self.timeline = []
		self._seen_ids.clear()
		await self.mount()

	async def send_message(self, content: str) -> Optional[ChatMessage]:
		"""Append a visitor message straight to the store, bypassing the AI."""
		content = content.strip()
		if not content:
			return None
		message = await self.store.append(self.session_id, Role.VISITOR, content)
		if message is not None:
			self._add(present(message))
		return message

	def add_ai_message(self, content: str, timestamp: Optional[int] = None) -> TimelineEntry:
		entry = TimelineEntry(Role.AI, content, timestamp if timestamp is not None else self.store.now())
		self._add(entry)
		return entry

	def operator_typing(self) -> bool:
		"""Typing is shown only while the last update is younger than the TTL."""
		return self.is_live and self.typing.is_fresh(self.store.now(), TYPING_TTL_MS)

	async def _handle_live(self, state: LiveState) -> None:
		was_live = self.is_live
		self.is_live = state.is_live
		if state.is_live and not was_live:
			if self.session_id not in self._announced:
				self._announced.add(self.session_id)
				if self.on_operator_joined is not None:
					await deliver(self.on_operator_joined, state)
			await self._start_live_streams()
		elif was_live and not state.is_live:
			self._stop_live_streams()
			self.typing = TypingState(session_id=self.session_id)
		if self.on_live_change is not None and state.is_live != was_live:
			await deliver(self.on_live_change, state)

	async def _start_live_streams(self) -> None:
		self._stop_live_streams()
		# Messages already in the log are history, not live operator replies
		latest = await self.store.list_messages(self.session_id, limit=1)
		self._stream_start = latest[-1].timestamp if latest else 0
		self._unsub_live_streams.append(await self.store.stream_messages(self.session_id, self._handle_message))
		self._unsub_live_streams.append(await self.store.stream_typing(self.session_id, self._handle_typing))

	def _stop_live_streams(self) -> None:
		while self._unsub_live_streams:
			self._unsub_live_streams.pop()()

	async def _handle_message(self, message: ChatMessage) -> None:
		if message.role is not Role.OPERATOR or message.timestamp <= self._stream_start:
			return
		if message.id is not None and message.id in self._seen_ids:
			return
		entry = present(message)
		self._add(entry)
		if self.on_operator_message is not None:
			await deliver(self.on_operator_message, entry)

	async def _handle_typing(self, state: TypingState) -> None:
		self.typing = state
		if self.on_typing_change is not None:
			await deliver(self.on_typing_change, self.operator_typing())

	def _add(self, entry: TimelineEntry) -> None:
		if entry.id is not None:
			if entry.id in self._seen_ids:
				return
			self._seen_ids.add(entry.id)
		self.timeline.append(entry)
		self.timeline.sort(key=lambda e: (e.timestamp, e.id if e.id is not None else 0))
