"""FastAPI routes for visitor sessions and chat turns."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from controllers.chat_controller import get_live, post_turn, post_voice_turn, start_session

router = APIRouter(prefix="/sessions")


class StartPayload(BaseModel):
	session_id: Optional[str] = None
	declared_context: Optional[str] = None


class HistoryItem(BaseModel):
	role: str
	content: str


class TurnPayload(BaseModel):
	text: str
	history: List[HistoryItem] = Field(default_factory=list)
	declared_context: Optional[str] = None


class VoiceTurnPayload(BaseModel):
	role: str = "user"
	transcript: str
	history: List[HistoryItem] = Field(default_factory=list)
	declared_context: Optional[str] = None


def _items(history: List[HistoryItem]) -> List[Dict[str, Any]]:
	return [{"role": item.role, "content": item.content} for item in history]


@router.post("")
async def start_session_route(request: Request, payload: StartPayload):
	try:
		return await start_session(request, payload.session_id, payload.declared_context)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/turns")
async def post_turn_route(request: Request, session_id: str, payload: TurnPayload):
	try:
		return await post_turn(request, session_id, payload.text, _items(payload.history), payload.declared_context)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/voice-turns")
async def post_voice_turn_route(request: Request, session_id: str, payload: VoiceTurnPayload):
	try:
		return await post_voice_turn(
			request, session_id, payload.role, payload.transcript, _items(payload.history), payload.declared_context
		)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{session_id}/live")
async def get_live_route(request: Request, session_id: str):
	try:
		return await get_live(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
