"""
XFound Backend — Message Relay Unit Tests
===========================================

What:  Delivery behavior of MessageRelay against an in-memory ChatStore and
       recording sessions.

Scenarios:
    ✅ both online: recipient gets receive_message, sender gets message_sent
    ✅ recipient offline: only message_sent, message still stored
    ✅ storage failure: no receive_message / message_sent, message_failed + log
    ✅ unexpected store exceptions fail one message, session stays registered
    ✅ register / disconnect delegate to the presence directory
"""

import logging
import uuid

import pytest

from app.exceptions import DatabaseError
from app.services.message_relay import (
    MESSAGE_FAILED,
    MESSAGE_SENT,
    RECEIVE_MESSAGE,
    MessageRelay,
)
from app.services.presence import PresenceDirectory


@pytest.fixture
def users():
    return str(uuid.uuid4()), str(uuid.uuid4())


@pytest.fixture
def relay(chat_store):
    return MessageRelay(PresenceDirectory(), chat_store)


class TestHandleIncoming:

    @pytest.mark.asyncio
    async def test_both_online_recipient_and_sender_get_same_snapshot(
        self, relay, chat_store, make_session, users
    ):
        alice, bob = users
        chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
        s_alice, s_bob = make_session("a"), make_session("b")
        relay.register(s_alice, alice)
        relay.register(s_bob, bob)

        snapshot = await relay.handle_incoming(s_alice, chat_id, alice, bob, "Is it still available?")

        assert chat_store.appended == [(chat_id, alice, "Is it still available?")]
        assert s_bob.events() == [RECEIVE_MESSAGE]
        assert s_alice.events() == [MESSAGE_SENT]

        received = s_bob.emitted[0][1]
        acked = s_alice.emitted[0][1]
        assert received == acked == snapshot.model_dump(mode="json")
        assert received["messages"][-1]["content"] == "Is it still available?"
        assert received["messages"][-1]["sender_id"] == alice

    @pytest.mark.asyncio
    async def test_recipient_offline_only_sender_is_acknowledged(
        self, relay, chat_store, make_session, users
    ):
        alice, bob = users
        chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
        s_alice = make_session("a")
        relay.register(s_alice, alice)

        snapshot = await relay.handle_incoming(s_alice, chat_id, alice, bob, "hello")

        assert snapshot is not None
        assert len(chat_store.chats[chat_id].messages) == 1
        assert s_alice.events() == [MESSAGE_SENT]

    @pytest.mark.asyncio
    async def test_sender_not_registered_still_gets_ack_on_its_session(
        self, relay, chat_store, make_session, users
    ):
        alice, bob = users
        chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
        s_alice = make_session("a")

        await relay.handle_incoming(s_alice, chat_id, alice, bob, "hi")

        assert s_alice.events() == [MESSAGE_SENT]

    @pytest.mark.asyncio
    async def test_storage_failure_emits_no_delivery_events(
        self, relay, chat_store, make_session, users, caplog
    ):
        alice, bob = users
        chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
        chat_store.fail_with = DatabaseError(message="Could not store the message. Please try again.")
        s_alice, s_bob = make_session("a"), make_session("b")
        relay.register(s_alice, alice)
        relay.register(s_bob, bob)

        with caplog.at_level(logging.ERROR, logger="app.services.message_relay"):
            result = await relay.handle_incoming(s_alice, chat_id, alice, bob, "hello")

        assert result is None
        assert s_bob.emitted == []
        assert RECEIVE_MESSAGE not in s_alice.events()
        assert MESSAGE_SENT not in s_alice.events()
        assert s_alice.emitted == [
            (
                MESSAGE_FAILED,
                {
                    "error": "database_error",
                    "message": "Could not store the message. Please try again.",
                    "chatId": chat_id,
                },
            )
        ]
        assert any(chat_id in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_unexpected_store_error_is_scoped_to_one_message(
        self, relay, chat_store, make_session, users, caplog
    ):
        alice, bob = users
        chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
        s_alice = make_session("a")
        relay.register(s_alice, alice)
        chat_store.fail_with = ConnectionRefusedError(111, "Connection refused")

        with caplog.at_level(logging.ERROR, logger="app.services.message_relay"):
            result = await relay.handle_incoming(s_alice, chat_id, alice, bob, "first")

        assert result is None
        assert s_alice.events() == [MESSAGE_FAILED]
        assert s_alice.emitted[0][1]["error"] == "database_error"
        assert any(record.exc_info for record in caplog.records)
        assert relay.presence.lookup(alice) is s_alice

        chat_store.fail_with = None
        await relay.handle_incoming(s_alice, chat_id, alice, bob, "second")
        assert s_alice.events() == [MESSAGE_FAILED, MESSAGE_SENT]

    @pytest.mark.asyncio
    async def test_unknown_chat_is_reported_as_not_found(
        self, relay, make_session, users, caplog
    ):
        alice, bob = users
        s_alice = make_session("a")
        missing = str(uuid.uuid4())

        with caplog.at_level(logging.ERROR, logger="app.services.message_relay"):
            await relay.handle_incoming(s_alice, missing, alice, bob, "hello")

        event, data = s_alice.emitted[0]
        assert event == MESSAGE_FAILED
        assert data["error"] == "not_found"
        assert data["chatId"] == missing
        assert caplog.records

    @pytest.mark.asyncio
    async def test_messages_from_one_session_keep_their_order(
        self, relay, chat_store, make_session, users
    ):
        alice, bob = users
        chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
        s_alice = make_session("a")

        for text in ("one", "two", "three"):
            await relay.handle_incoming(s_alice, chat_id, alice, bob, text)

        contents = [m.content for m in chat_store.chats[chat_id].messages]
        assert contents == ["one", "two", "three"]


class TestPresenceDelegation:

    def test_register_and_disconnect(self, relay, make_session, caplog):
        s1 = make_session("s1")
        with caplog.at_level(logging.INFO, logger="app.services.message_relay"):
            relay.register(s1, "alice")
            assert relay.presence.lookup("alice") is s1
            assert relay.disconnect(s1) == "alice"

        assert relay.presence.lookup("alice") is None
        assert any("went offline" in r.getMessage() for r in caplog.records)

    def test_reregistration_is_logged_and_replaces_session(self, relay, make_session, caplog):
        s1, s2 = make_session("s1"), make_session("s2")
        relay.register(s1, "alice")
        with caplog.at_level(logging.INFO, logger="app.services.message_relay"):
            relay.register(s2, "alice")

        assert relay.presence.lookup("alice") is s2
        assert any("re-registered" in r.getMessage() for r in caplog.records)
        assert relay.disconnect(s1) is None
        assert relay.presence.lookup("alice") is s2
