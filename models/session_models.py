"""Session domain models shared by the store, the client hook and the console."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


def now_ms(clock=time.time) -> int:
	"""Return the clock reading as integer milliseconds."""
	return int(clock() * 1000)


class Role(str, Enum):
	"""Author of a message in the session log."""

	VISITOR = "visitor"
	AI = "ai"
	OPERATOR = "operator"


@dataclass
class ChatMessage:
	"""One append-only entry of a session's message log."""

	session_id: str
	role: Role
	content: str
	timestamp: int
	id: Optional[int] = None

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"session_id": self.session_id,
			"role": self.role.value,
			"content": self.content,
			"timestamp": self.timestamp,
		}


@dataclass
class LiveState:
	"""Who answers next. `is_live` implies `operator_joined_at` is set."""

	session_id: str
	is_live: bool = False
	operator_joined_at: Optional[int] = None
	updated_at: Optional[int] = None

	def to_dict(self) -> dict:
		return {
			"session_id": self.session_id,
			"is_live": self.is_live,
			"operator_joined_at": self.operator_joined_at,
		}


@dataclass
class TypingState:
	"""Advisory operator typing flag."""

	session_id: str
	is_typing: bool = False
	updated_at: int = 0

	def is_fresh(self, at_ms: int, ttl_ms: int = 3000) -> bool:
		"""Return True when the flag is set and younger than the TTL."""
		return self.is_typing and at_ms - self.updated_at < ttl_ms


@dataclass
class SessionRecord:
	"""Row in the sessions table."""

	session_id: str
	created_at: int
	last_activity: int
	declared_context: Optional[str] = None
	live: LiveState = field(default_factory=lambda: LiveState(session_id=""))


@dataclass
class SessionSummary:
	"""Console view of one recent session."""

	session_id: str
	message_count: int
	last_message: str
	last_message_time: int
	is_live: bool
	first_visitor_message: str = ""
	declared_context: Optional[str] = None

	def to_dict(self) -> dict:
		return {
			"session_id": self.session_id,
			"message_count": self.message_count,
			"last_message": self.last_message,
			"last_message_time": self.last_message_time,
			"is_live": self.is_live,
			"first_visitor_message": self.first_visitor_message,
			"declared_context": self.declared_context,
		}
