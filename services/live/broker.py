"""In-process fan-out of store changes to subscribers."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, DefaultDict, List, Optional, Tuple, Union

LOGGER = logging.getLogger(__name__)

Listener = Callable[[Any], Union[None, Awaitable[None]]]


class Topic(str, Enum):
	LIVE = "live"
	MESSAGES = "messages"
	TYPING = "typing"


class ChangeBroker:
	"""Deliver published values to listeners keyed by (topic, session id).

	Listeners may be plain callables or coroutine functions. A failing
	listener is logged and does not stop delivery to the others.
	"""

	def __init__(self) -> None:
		self._listeners: DefaultDict[Tuple[Topic, str], List[Listener]] = defaultdict(list)

	def subscribe(self, topic: Topic, session_id: str, listener: Listener) -> Callable[[], None]:
		"""Register `listener` and return a callable that removes it."""
		key = (topic, session_id)
		self._listeners[key].append(listener)

		def unsubscribe() -> None:
			listeners = self._listeners.get(key)
			if listeners and listener in listeners:
				listeners.remove(listener)
				if not listeners:
					del self._listeners[key]

		return unsubscribe

	async def publish(self, topic: Topic, session_id: str, value: Any) -> None:
		for listener in list(self._listeners.get((topic, session_id), ())):
			await deliver(listener, value)

	def listener_count(self, topic: Optional[Topic] = None, session_id: Optional[str] = None) -> int:
		"""Count live listeners, optionally filtered by topic and/or session."""
		return sum(
			len(listeners)
			for (key_topic, key_session), listeners in self._listeners.items()
			if (topic is None or key_topic == topic) and (session_id is None or key_session == session_id)
		)


async def deliver(listener: Listener, value: Any) -> None:
	"""Invoke one listener, awaiting it if needed and logging failures."""
	try:
		result = listener(value)
		if inspect.isawaitable(result):
			await result
	except Exception as exc:
		LOGGER.warning("Change listener %r failed: %s", listener, exc)
