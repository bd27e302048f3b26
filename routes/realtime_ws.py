"""WebSocket endpoint carrying the visitor's live chat session."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.live.store import LiveStore
from services.live.ws_bridge import VisitorSocketHandler

router = APIRouter()


def _require_store(websocket: WebSocket) -> LiveStore:
	store = getattr(websocket.app.state, "store", None)
	if store is None:
		raise HTTPException(status_code=500, detail="Session store unavailable")
	return store


@router.websocket("/ws/{session_id}")
async def visitor_socket(websocket: WebSocket, session_id: str, store: LiveStore = Depends(_require_store)):
	"""Stream operator activity to the visitor and accept their messages."""
	await websocket.accept()
	await store.ensure_session(session_id)

	handler = VisitorSocketHandler(websocket, session_id, store, websocket.app.state.processor)
	await handler.open()
	try:
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except ValueError:
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
				continue
			if not isinstance(payload, dict):
				await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be a JSON object"}))
				continue
			await handler.handle(payload)
	finally:
		handler.close()
