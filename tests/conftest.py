"""Shared pytest fixtures for the handoff service test suite."""

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from dal.session_dal import SessionDAL  # noqa: E402
from services.ai.responder import ResponderError  # noqa: E402
from services.live.store import LiveStore  # noqa: E402
from services.notify.dispatcher import NotificationDispatcher  # noqa: E402
from services.operator.actions import OperatorActions  # noqa: E402
from utils.database_init import AsyncDatabaseInitializer  # noqa: E402


class TickingClock:
    """Deterministic clock that advances one millisecond per reading."""

    def __init__(self, start: float = 1_700_000_000.0, step: float = 0.001) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWebhook:
    """Records outbound alert payloads instead of posting them."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.calls: List[Dict[str, Any]] = []

    @property
    def configured(self) -> bool:
        return True

    async def post(self, payload: Dict[str, Any]) -> bool:
        self.calls.append(payload)
        return self.succeed


class FakeResponder:
    """Stands in for the OpenAI-backed persona."""

    def __init__(self, reply: str = "Happy to help with that.", fail: bool = False) -> None:
        self.reply_text = reply
        self.fail = fail
        self.calls: List[list] = []

    async def reply(self, history, *, declared_context=None, max_tokens=600) -> str:
        self.calls.append(list(history))
        if self.fail:
            raise ResponderError("AI reply failed: offline")
        return self.reply_text


class BrokenDAL:
    """DAL whose every call fails, as when the database is unreachable."""

    def __getattr__(self, name):
        async def _fail(*args, **kwargs):
            raise OSError(f"database unavailable ({name})")

        return _fail


class FlakyAppendDAL(SessionDAL):
    """Real DAL except that appending a message always fails."""

    async def insert_message(self, *args, **kwargs):
        raise OSError("database unavailable (insert_message)")


class FirstLiveWriteFailsDAL(SessionDAL):
    """Real DAL whose first live-flag write is dropped."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.live_writes = 0

    async def write_live(self, state):
        self.live_writes += 1
        if self.live_writes == 1:
            raise OSError("database unavailable (write_live)")
        await super().write_live(state)


@pytest.fixture
def db_initializer(tmp_path):
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store(db_initializer, clock):
    return LiveStore(SessionDAL(db_initializer), clock=clock)


@pytest.fixture
def webhook():
    return FakeWebhook()


@pytest.fixture
def dispatcher(webhook):
    return NotificationDispatcher(webhook)


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def actions(store):
    return OperatorActions(store, "Erhan")
