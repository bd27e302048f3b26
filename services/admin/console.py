"""Operator dashboard state: session list, selected transcript and drafts."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from models.session_models import ChatMessage, SessionSummary
from services.live.store import LiveStore
from services.operator.actions import ActionResult, OperatorActions

LOGGER = logging.getLogger(__name__)


@dataclass
class SessionView:
    """One row of the session list plus the operator's local UI state."""

    summary: SessionSummary
    selected: bool = False
    draft: str = ""
    stale: bool = False

    @property
    def session_id(self) -> str:
        return self.summary.session_id

    def to_dict(self) -> dict:
        return {**self.summary.to_dict(), "selected": self.selected, "draft": self.draft, "stale": self.stale}


class AdminConsole:
    """State behind one logged-in console.

    The session list is a keyed map. A refresh merges fetched summaries into
    existing entries, so the selection and any half-typed draft survive it.
    """

    def __init__(
        self,
        store: LiveStore,
        actions: OperatorActions,
        *,
        active_within_seconds: float = 1800,
        poll_seconds: float = 5,
    ) -> None:
        self.store = store
        self.actions = actions
        self.active_within_seconds = active_within_seconds
        self.poll_seconds = poll_seconds

        self.sessions: Dict[str, SessionView] = {}
        self.selected_id: Optional[str] = None
        self.messages: List[ChatMessage] = []
        self.scroll_to: Optional[int] = None
        self.focus_reply = False
        self._unsub_messages: Optional[Callable[[], None]] = None
        self._poll_task: Optional[asyncio.Task] = None

    async def refresh(self) -> List[SessionView]:
        """Fetch recent sessions and merge them into the keyed list."""
        summaries = await self.store.list_sessions(self.active_within_seconds)
        fetched = set()
        for summary in summaries:
            fetched.add(summary.session_id)
            view = self.sessions.get(summary.session_id)
            if view is None:
                self.sessions[summary.session_id] = SessionView(summary=summary)
            else:
                view.summary = summary
                view.stale = False

        for session_id in list(self.sessions):
            if session_id in fetched:
                continue
            view = self.sessions[session_id]
            if view.selected or view.draft:
                view.stale = True
            else:
                del self.sessions[session_id]
        return self.ordered()

    def ordered(self) -> List[SessionView]:
        """Live sessions first, then by most recent message."""
        return sorted(
            self.sessions.values(),
            key=lambda v: (not v.summary.is_live, -v.summary.last_message_time),
        )

    async def run_polling(self) -> None:
        """Refresh on the configured interval until cancelled."""
        while True:
            try:
                await self.refresh()
                await asyncio.sleep(self.poll_seconds)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                LOGGER.warning("Console refresh failed: %s", exc)
                await asyncio.sleep(self.poll_seconds)

    def start_polling(self) -> asyncio.Task:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self.run_polling())
        return self._poll_task

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def select(self, session_id: str) -> List[ChatMessage]:
        """Open a session's message stream, replacing any previous selection."""
        self._drop_selection()
        view = self.sessions.get(session_id)
        if view is None:
            live = await self.store.get_live(session_id)
            view = SessionView(summary=SessionSummary(session_id, 0, "", 0, live.is_live), stale=True)
            self.sessions[session_id] = view
        view.selected = True
        self.selected_id = session_id
        self.messages = []
        self.focus_reply = True
        self._unsub_messages = await self.store.stream_messages(session_id, self._on_message, replay=True)
        return self.messages

    def set_draft(self, session_id: str, text: str) -> None:
        view = self.sessions.get(session_id)
        if view is None:
            raise KeyError(f"Unknown session '{session_id}'")
        view.draft = text

    async def join(self, session_id: str) -> ActionResult:
        result = await self.actions.join(session_id)
        self._mark_live(session_id, result)
        return result

    async def leave(self, session_id: str) -> ActionResult:
        result = await self.actions.leave(session_id)
        self._mark_live(session_id, result)
        return result

    async def send(self, session_id: str, text: Optional[str] = None, *, ghost: bool = False) -> ActionResult:
        """Send `text`, or the session's draft when no text is given."""
        view = self.sessions.get(session_id)
        if text is None:
            text = view.draft if view else ""
        result = await self.actions.send(session_id, text, ghost=ghost)
        if result.ok and view is not None:
            view.draft = ""
        self._mark_live(session_id, result)
        return result

    async def typing(self, session_id: str, is_typing: bool = True) -> ActionResult:
        return await self.actions.typing(session_id, is_typing)

    def close(self) -> None:
        self.stop_polling()
        self._drop_selection()

    def _on_message(self, message: ChatMessage) -> None:
        if any(existing.id == message.id for existing in self.messages):
            return
        self.messages.append(message)
        self.scroll_to = message.id

    def _drop_selection(self) -> None:
        if self._unsub_messages is not None:
            self._unsub_messages()
            self._unsub_messages = None
        if self.selected_id is not None:
            previous = self.sessions.get(self.selected_id)
            if previous is not None:
                previous.selected = False
        self.selected_id = None
        self.messages = []
        self.scroll_to = None
        self.focus_reply = False

    def _mark_live(self, session_id: str, result: ActionResult) -> None:
        view = self.sessions.get(session_id)
        if view is not None and result.ok:
            view.summary.is_live = result.is_live
