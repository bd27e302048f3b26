"""Visitor chat helpers: session bootstrap, turns and live status."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import HTTPException, Request

from models.signal_models import Utterance
from services.ai.responder import ResponderError
from services.chat.turns import VisitorTurnProcessor, generate_session_id
from services.live.store import LiveStore

LOGGER = logging.getLogger(__name__)


def _history(items: Optional[Iterable[Mapping[str, Any]]]) -> List[Utterance]:
	return [Utterance(role=str(item.get("role", "")), content=str(item.get("content", ""))) for item in items or []]


async def start_session(request: Request, session_id: Optional[str], declared_context: Optional[str]) -> Dict[str, Any]:
	"""Create (or resume) a visitor session and return its live status."""
	store: LiveStore = request.app.state.store
	session_id = (session_id or "").strip() or generate_session_id(store.clock)
	await store.ensure_session(session_id, declared_context)
	live = await store.get_live(session_id)
	return {"session_id": session_id, "is_live": live.is_live}


async def post_turn(
	request: Request,
	session_id: str,
	text: str,
	history: Optional[Iterable[Mapping[str, Any]]],
	declared_context: Optional[str],
) -> Dict[str, Any]:
	"""Run one typed visitor turn."""
	processor: VisitorTurnProcessor = request.app.state.processor
	try:
		result = await processor.handle_text_turn(session_id, text, _history(history), declared_context)
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	except ResponderError as exc:
		LOGGER.error("AI reply failed for %s: %s", session_id, exc)
		raise HTTPException(status_code=502, detail="The assistant is unavailable right now.") from exc
	return result.to_dict()


async def post_voice_turn(
	request: Request,
	session_id: str,
	role: str,
	transcript: str,
	history: Optional[Iterable[Mapping[str, Any]]],
	declared_context: Optional[str],
) -> Dict[str, Any]:
	"""Record one voice-chat transcript line."""
	processor: VisitorTurnProcessor = request.app.state.processor
	try:
		result = await processor.handle_voice_turn(session_id, role, transcript, _history(history), declared_context)
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	return result.to_dict()


async def get_live(request: Request, session_id: str) -> Dict[str, Any]:
	store: LiveStore = request.app.state.store
	live = await store.get_live(session_id)
	return {"is_live": live.is_live, "operator_joined_at": live.operator_joined_at}
