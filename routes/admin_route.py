"""Operator console API. Mounted under the unlisted ADMIN_PATH prefix."""

from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel

from services.admin.auth import AdminAuth
from services.admin.console import AdminConsole

router = APIRouter(include_in_schema=False)


class LoginPayload(BaseModel):
    password: str


class DraftPayload(BaseModel):
    text: str = ""


class SendPayload(BaseModel):
    text: Optional[str] = None
    ghost: bool = False


class TypingPayload(BaseModel):
    is_typing: bool = True


def _console(request: Request, token: Optional[str]) -> AdminConsole:
    auth: AdminAuth = request.app.state.admin_auth
    console = auth.console(token)
    if console is None:
        raise HTTPException(status_code=401, detail="Login required")
    return console


@router.post("/login")
async def login_route(request: Request, payload: LoginPayload):
    auth: AdminAuth = request.app.state.admin_auth
    if not auth.enabled:
        raise HTTPException(status_code=503, detail="Console is not configured")
    token = await auth.login(payload.password)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid password")
    return {"token": token}


@router.post("/logout")
async def logout_route(request: Request, x_admin_token: Optional[str] = Header(default=None)):
    auth: AdminAuth = request.app.state.admin_auth
    return {"ok": auth.logout(x_admin_token or "")}


@router.get("/sessions")
async def list_sessions_route(request: Request, x_admin_token: Optional[str] = Header(default=None)):
    console = _console(request, x_admin_token)
    try:
        views = await console.refresh()
        return {"sessions": [view.to_dict() for view in views], "selected": console.selected_id}
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/sessions/{session_id}/select")
async def select_session_route(request: Request, session_id: str, x_admin_token: Optional[str] = Header(default=None)):
    console = _console(request, x_admin_token)
    try:
        messages = await console.select(session_id)
        return {
            "session_id": session_id,
            "messages": [m.to_dict() for m in messages],
            "scroll_to": console.scroll_to,
            "focus_reply": console.focus_reply,
        }
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions/{session_id}/messages")
async def session_messages_route(request: Request, session_id: str, x_admin_token: Optional[str] = Header(default=None)):
    console = _console(request, x_admin_token)
    try:
        if console.selected_id == session_id:
            messages = list(console.messages)
        else:
            messages = await console.store.list_messages(session_id)
        return {"session_id": session_id, "messages": [m.to_dict() for m in messages], "scroll_to": console.scroll_to}
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.put("/sessions/{session_id}/draft")
async def draft_route(
    request: Request, session_id: str, payload: DraftPayload, x_admin_token: Optional[str] = Header(default=None)
):
    console = _console(request, x_admin_token)
    try:
        console.set_draft(session_id, payload.text)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"session_id": session_id, "draft": payload.text}


@router.post("/sessions/{session_id}/join")
async def join_route(request: Request, session_id: str, x_admin_token: Optional[str] = Header(default=None)):
    console = _console(request, x_admin_token)
    try:
        return (await console.join(session_id)).to_dict()
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/sessions/{session_id}/leave")
async def leave_route(request: Request, session_id: str, x_admin_token: Optional[str] = Header(default=None)):
    console = _console(request, x_admin_token)
    try:
        return (await console.leave(session_id)).to_dict()
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/sessions/{session_id}/send")
async def send_route(
    request: Request, session_id: str, payload: SendPayload, x_admin_token: Optional[str] = Header(default=None)
):
    console = _console(request, x_admin_token)
    try:
        return (await console.send(session_id, payload.text, ghost=payload.ghost)).to_dict()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/sessions/{session_id}/typing")
async def typing_route(
    request: Request, session_id: str, payload: TypingPayload, x_admin_token: Optional[str] = Header(default=None)
):
    console = _console(request, x_admin_token)
    try:
        return (await console.typing(session_id, payload.is_typing)).to_dict()
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
