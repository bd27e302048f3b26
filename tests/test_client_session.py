"""Tests for the visitor-side live session hook."""

import asyncio

from models.session_models import Role
from services.live.client_session import LiveSessionClient


class Recorder:
    def __init__(self):
        self.joined = []
        self.messages = []
        self.typing = []
        self.live = []

    def client(self, store, session_id):
        return LiveSessionClient(
            store,
            session_id,
            on_operator_joined=self.joined.append,
            on_operator_message=self.messages.append,
            on_typing_change=self.typing.append,
            on_live_change=lambda state: self.live.append(state.is_live),
        )


def test_operator_joined_fires_once_per_client(store, actions):
    rec = Recorder()

    async def scenario():
        client = rec.client(store, "S1")
        await client.mount()
        await actions.join("S1")
        await actions.leave("S1")
        await actions.join("S1")
        client.unmount()

    asyncio.run(scenario())
    assert len(rec.joined) == 1
    assert rec.live == [True, False, True]


def test_only_new_operator_messages_are_streamed(store, actions):
    rec = Recorder()

    async def scenario():
        await store.append_message("S1", Role.OPERATOR, "old operator note")
        client = rec.client(store, "S1")
        await client.mount()
        await actions.join("S1")
        await store.append_message("S1", Role.AI, "ai text")
        await actions.send("S1", "Hello from a human")
        client.unmount()
        return client

    client = asyncio.run(scenario())
    contents = [entry.content for entry in rec.messages]
    assert "old operator note" not in contents
    assert "ai text" not in contents
    assert contents[-1] == "Hello from a human"
    assert len(contents) == 2  # greeting + reply
    assert [e.content for e in client.timeline] == contents


def test_ghost_messages_show_as_ai(store, actions):
    rec = Recorder()

    async def scenario():
        client = rec.client(store, "S1")
        await client.mount()
        await actions.send("S1", "He is free from May", ghost=True)
        client.unmount()

    asyncio.run(scenario())
    entry = rec.messages[-1]
    assert entry.role is Role.AI
    assert entry.content == "He is free from May"


def test_send_message_bypasses_ai(store, actions):
    async def scenario():
        client = LiveSessionClient(store, "S1")
        await client.mount()
        await actions.join("S1")
        sent = await client.send_message("  thanks!  ")
        client.unmount()
        return sent, await store.list_messages("S1")

    sent, messages = asyncio.run(scenario())
    assert sent.role is Role.VISITOR
    assert messages[-1].content == "thanks!"
    assert {m.role for m in messages} == {Role.OPERATOR, Role.VISITOR}


def test_typing_indicator_and_ttl(store, actions, clock):
    rec = Recorder()

    async def scenario():
        client = rec.client(store, "S1")
        await client.mount()
        await actions.join("S1")
        await actions.typing("S1", True)
        assert client.operator_typing() is True
        clock.advance(4)
        assert client.operator_typing() is False
        await actions.send("S1", "done typing")
        client.unmount()

    asyncio.run(scenario())
    assert True in rec.typing
    assert rec.typing[-1] is False


def test_no_listener_leaks_across_session_switches(store, actions):
    async def scenario():
        client = LiveSessionClient(store, "S1")
        await client.mount()
        await actions.join("S1")
        await actions.join("S2")
        for session_id in ("S2", "S3", "S1", "S2"):
            await client.switch_session(session_id)
        during = store.broker.listener_count()
        client.unmount()
        return during

    during = asyncio.run(scenario())
    # live + messages + typing for the current (live) session only
    assert during == 3
    assert store.broker.listener_count() == 0


def test_unmount_is_idempotent(store):
    client = LiveSessionClient(store, "S1")
    asyncio.run(client.mount())
    client.unmount()
    client.unmount()
    assert store.broker.listener_count() == 0
