"""Tests for operator command parsing and the chat-ops event handler."""

import asyncio
import hashlib
import hmac

import pytest

from models.session_models import Role
from services.operator.actions import GHOST_PREFIX
from services.operator.command_channel import CommandChannel
from services.operator.commands import CommandKind, parse_command_text, parse_slash_command


def _message_event(text, **extra):
    return {"type": "event_callback", "event": {"type": "message", "text": text, **extra}}


class TestParseCommandText:
    @pytest.mark.parametrize(
        "text,kind,session_id",
        [
            ("/join ABC123", CommandKind.JOIN, "ABC123"),
            ("join ABC123", CommandKind.JOIN, "ABC123"),
            ("/LEAVE lz3k9q-4f7xq1", CommandKind.LEAVE, "lz3k9q-4f7xq1"),
            ("/typing ABC123", CommandKind.TYPING, "ABC123"),
        ],
    )
    def test_keyword_commands(self, text, kind, session_id):
        command = parse_command_text(text)
        assert command.kind is kind
        assert command.session_id == session_id

    def test_addressed_message(self):
        command = parse_command_text("[ABC123] Hi, I can start next month")
        assert command.kind is CommandKind.MESSAGE
        assert command.session_id == "ABC123"
        assert command.text == "Hi, I can start next month"
        assert command.ghost is False

    def test_ghost_message(self):
        command = parse_command_text("[ABC123] ai: He is open to contract work.")
        assert command.ghost is True
        assert command.text == "He is open to contract work."

    @pytest.mark.parametrize("text", [None, "", "hello team", "[ABC123]   ", "/join", "/join two ids"])
    def test_unaddressed_is_ignored(self, text):
        assert parse_command_text(text) is None

    def test_slash_command(self):
        command = parse_slash_command("/join", "ABC123")
        assert command.kind is CommandKind.JOIN
        assert parse_slash_command("", "ABC123") is None
        assert parse_slash_command("/wave", "ABC123") is None


class TestCommandChannel:
    def test_url_verification_echoes_challenge(self, actions, store):
        channel = CommandChannel(actions)
        outcome = asyncio.run(channel.handle_event({"type": "url_verification", "challenge": "tok-123"}))
        assert outcome.challenge == "tok-123"
        assert store.broker.listener_count() == 0

    def test_join_sets_live_and_greets_once(self, actions, store):
        channel = CommandChannel(actions)

        async def scenario():
            await channel.handle_event(_message_event("/join ABC123"))
            return await store.get_live("ABC123"), await store.list_messages("ABC123")

        live, messages = asyncio.run(scenario())
        assert live.is_live is True
        assert live.operator_joined_at is not None
        assert len(messages) == 1
        assert messages[0].role is Role.OPERATOR
        assert "Erhan" in messages[0].content

    def test_redelivered_join_is_harmless(self, actions, store):
        channel = CommandChannel(actions)

        async def scenario():
            await channel.handle_event(_message_event("/join ABC123"))
            await channel.handle_event(_message_event("/join ABC123"))
            return await store.list_messages("ABC123")

        assert len(asyncio.run(scenario())) == 1

    def test_leave_clears_live(self, actions, store):
        channel = CommandChannel(actions)

        async def scenario():
            await channel.handle_event(_message_event("/join ABC123"))
            await channel.handle_event(_message_event("/leave ABC123"))
            return await store.get_live("ABC123")

        live = asyncio.run(scenario())
        assert live.is_live is False
        assert live.operator_joined_at is None

    def test_message_auto_joins_and_appends(self, actions, store):
        channel = CommandChannel(actions)

        async def scenario():
            await channel.handle_event(_message_event("[ABC123] Yes, I'm available in March"))
            return await store.get_live("ABC123"), await store.list_messages("ABC123")

        live, messages = asyncio.run(scenario())
        assert live.is_live is True
        assert [m.content for m in messages] == ["Yes, I'm available in March"]

    def test_ghost_message_is_stored_with_prefix(self, actions, store):
        channel = CommandChannel(actions)
        asyncio.run(channel.handle_event(_message_event("[ABC123] ai: Sure thing")))
        messages = asyncio.run(store.list_messages("ABC123"))
        assert messages[0].content == f"{GHOST_PREFIX}Sure thing"

    def test_redelivered_message_is_duplicated(self, actions, store):
        # At-least-once delivery gives no key to tell a retry from a repeat.
        channel = CommandChannel(actions)
        event = _message_event("[ABC123] ok")

        async def scenario():
            await channel.handle_event(event)
            await channel.handle_event(event)
            return await store.list_messages("ABC123")

        assert [m.content for m in asyncio.run(scenario())] == ["ok", "ok"]

    @pytest.mark.parametrize(
        "event",
        [
            _message_event("[ABC123] echo", bot_id="B01"),
            _message_event("[ABC123] edited", subtype="message_changed"),
            {"type": "event_callback", "event": {"type": "reaction_added"}},
            {"type": "event_callback", "event": "not-an-object"},
            {"type": "app_rate_limited"},
            _message_event("general chatter"),
        ],
    )
    def test_ignored_events_have_no_effect(self, actions, store, event):
        channel = CommandChannel(actions)
        outcome = asyncio.run(channel.handle_event(event))
        assert outcome.ignored_reason
        assert asyncio.run(store.list_messages("ABC123")) == []
        assert asyncio.run(store.get_live("ABC123")).is_live is False

    def test_typing_command(self, actions, store):
        channel = CommandChannel(actions)
        asyncio.run(channel.handle_event(_message_event("/typing ABC123")))
        assert asyncio.run(store.get_typing("ABC123")).is_typing is True

    def test_slash_command_payload(self, actions, store):
        channel = CommandChannel(actions)
        asyncio.run(channel.handle_slash_command({"command": "/join", "text": "ABC123"}))
        assert asyncio.run(store.get_live("ABC123")).is_live is True


class TestSignature:
    SECRET = "shh"

    def _sign(self, body, ts):
        digest = hmac.new(self.SECRET.encode(), f"v0:{ts}:{body.decode()}".encode(), hashlib.sha256).hexdigest()
        return "v0=" + digest

    def test_disabled_without_secret(self, actions):
        assert CommandChannel(actions).verify_signature(b"{}", None, None) is True

    def test_valid_signature(self, actions):
        channel = CommandChannel(actions, self.SECRET, clock=lambda: 1_700_000_000)
        body = b'{"type":"event_callback"}'
        assert channel.verify_signature(body, "1700000000", self._sign(body, "1700000000")) is True

    def test_rejects_bad_or_stale_signatures(self, actions):
        channel = CommandChannel(actions, self.SECRET, clock=lambda: 1_700_000_000)
        body = b"{}"
        assert channel.verify_signature(body, "1700000000", "v0=deadbeef") is False
        assert channel.verify_signature(body, "1699999000", self._sign(body, "1699999000")) is False
        assert channel.verify_signature(body, "not-a-number", self._sign(body, "x")) is False
        assert channel.verify_signature(body, None, None) is False
