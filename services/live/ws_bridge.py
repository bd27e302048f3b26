"""Bridge one visitor websocket to the live session hook and the turn processor."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from fastapi import WebSocket

from models.session_models import LiveState
from models.signal_models import Utterance
from services.ai.responder import ResponderError
from services.chat.turns import VisitorTurnProcessor
from services.live.client_session import LiveSessionClient, TimelineEntry
from services.live.store import LiveStore

LOGGER = logging.getLogger(__name__)


class VisitorSocketHandler:
	"""Push live-mode changes to the browser and route its messages."""

	def __init__(self, websocket: WebSocket, session_id: str, store: LiveStore, processor: VisitorTurnProcessor) -> None:
		self.websocket = websocket
		self.session_id = session_id
		self.processor = processor
		self.client = LiveSessionClient(
			store,
			session_id,
			on_operator_joined=self._operator_joined,
			on_operator_message=self._operator_message,
			on_typing_change=self._typing_changed,
			on_live_change=self._live_changed,
		)

	async def open(self) -> None:
		await self.client.mount()

	def close(self) -> None:
		self.client.unmount()

	async def handle(self, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		try:
			if payload.get("type") != "visitor.message":
				raise ValueError("Unsupported message type.")
			text = (payload.get("text") or "").strip()
			if not text:
				raise ValueError("Message text is required.")
			if self.client.is_live:
				await self.client.send_message(text)
				return
			history = self._history(payload.get("history"))
			result = await self.processor.handle_text_turn(self.session_id, text, history, payload.get("declared_context"))
			if result.reply is not None:
				self.client.add_ai_message(result.reply)
				frame = {"type": "ai.message", "request_id": request_id, **result.to_dict()}
				await self._send(frame)
		except ResponderError as exc:
			LOGGER.error("AI reply failed for %s: %s", self.session_id, exc)
			await self._send_error(request_id, "The assistant is unavailable right now.")
		except Exception as exc:
			await self._send_error(request_id, str(exc))

	@staticmethod
	def _history(items: Any) -> List[Utterance]:
		if not isinstance(items, list):
			return []
		return [
			Utterance(role=str(item.get("role", "")), content=str(item.get("content", "")))
			for item in items
			if isinstance(item, dict)
		]

	async def _operator_joined(self, state: LiveState) -> None:
		await self._send({"type": "operator.joined", "operator_joined_at": state.operator_joined_at})

	async def _operator_message(self, entry: TimelineEntry) -> None:
		await self._send({"type": "operator.message", **entry.to_dict()})

	async def _typing_changed(self, is_typing: bool) -> None:
		await self._send({"type": "operator.typing", "is_typing": is_typing})

	async def _live_changed(self, state: LiveState) -> None:
		await self._send({"type": "live.changed", **state.to_dict()})

	async def _send_error(self, request_id: Any, detail: str) -> None:
		await self._send({"type": "error", "request_id": request_id, "detail": detail})

	async def _send(self, payload: Dict[str, Any]) -> None:
		await self.websocket.send_text(json.dumps(payload))
