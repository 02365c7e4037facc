"""
XFound Backend — Chat WebSocket Endpoint Tests
================================================

Drives /ws/chat through Starlette's TestClient with the relay's store
replaced by the in-memory FakeChatStore, so no database is involved.

Each socket runs its own receive loop, so a `register` sent on one socket
is not guaranteed to be processed before a frame sent on another. Tests
wait for the presence directory to reflect a registration before relying
on it.
"""

import time
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocketDisconnect
from starlette.testclient import TestClient

from app.exceptions import DatabaseError
from app.main import create_app
from app.routes.chat_socket import ChatSession
from app.services.chat_service import ChatService
from app.services.message_relay import MessageRelay
from app.services.presence import PresenceDirectory


def wait_until(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def socket_app(chat_store):
    app = create_app()
    app.state.presence = PresenceDirectory()
    app.state.relay = MessageRelay(app.state.presence, chat_store)
    return app


@pytest.fixture
def client(socket_app):
    with TestClient(socket_app) as client:
        yield client


@pytest.fixture
def users():
    return str(uuid.uuid4()), str(uuid.uuid4())


def test_message_reaches_online_recipient_and_sender(socket_app, client, chat_store, users):
    alice, bob = users
    chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
    presence = socket_app.state.presence

    with client.websocket_connect("/ws/chat") as ws_alice, \
         client.websocket_connect("/ws/chat") as ws_bob:
        ws_alice.send_json({"event": "register", "data": alice})
        ws_bob.send_json({"event": "register", "data": {"userId": bob}})
        assert wait_until(lambda: alice in presence and bob in presence)

        ws_alice.send_json({
            "event": "send_message",
            "data": {"chatId": chat_id, "senderId": alice, "recipientId": bob, "content": "Found your ID card"},
        })

        received = ws_bob.receive_json()
        acked = ws_alice.receive_json()

    assert received["event"] == "receive_message"
    assert acked["event"] == "message_sent"
    assert received["data"] == acked["data"]
    assert received["data"]["messages"][-1]["content"] == "Found your ID card"


def test_offline_recipient_message_is_stored(client, chat_store, users):
    alice, bob = users
    chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])

    with client.websocket_connect("/ws/chat") as ws_alice:
        ws_alice.send_json({"event": "register", "data": alice})
        ws_alice.send_json({
            "event": "send_message",
            "data": {"chatId": chat_id, "senderId": alice, "recipientId": bob, "content": "hi"},
        })
        acked = ws_alice.receive_json()

    assert acked["event"] == "message_sent"
    assert [m.content for m in chat_store.chats[chat_id].messages] == ["hi"]


def test_storage_failure_sends_message_failed(client, chat_store, users):
    alice, bob = users
    chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
    chat_store.fail_with = DatabaseError(message="Could not store the message. Please try again.")

    with client.websocket_connect("/ws/chat") as ws_alice:
        ws_alice.send_json({
            "event": "send_message",
            "data": {"chatId": chat_id, "senderId": alice, "recipientId": bob, "content": "hi"},
        })
        frame = ws_alice.receive_json()

    assert frame == {
        "event": "message_failed",
        "data": {
            "error": "database_error",
            "message": "Could not store the message. Please try again.",
            "chatId": chat_id,
        },
    }


def test_close_unregisters_user(socket_app, client, users):
    alice, _ = users
    presence = socket_app.state.presence

    with client.websocket_connect("/ws/chat") as ws_alice:
        ws_alice.send_json({"event": "register", "data": alice})
        assert wait_until(lambda: alice in presence)

    assert wait_until(lambda: alice not in presence)


def test_malformed_frame_gets_error_event(client):
    with client.websocket_connect("/ws/chat") as ws:
        ws.send_text("not json at all")
        frame = ws.receive_json()

    assert frame["event"] == "error"
    assert frame["data"]["error"] == "invalid_frame"


def test_unknown_event_gets_error_event(client):
    with client.websocket_connect("/ws/chat") as ws:
        ws.send_json({"event": "typing", "data": {}})
        frame = ws.receive_json()

    assert frame["event"] == "error"
    assert frame["data"]["error"] == "unknown_event"


def test_send_message_with_missing_fields_gets_error_event(client, chat_store):
    with client.websocket_connect("/ws/chat") as ws:
        ws.send_json({"event": "send_message", "data": {"chatId": "abc", "content": "hi"}})
        frame = ws.receive_json()

    assert frame["event"] == "error"
    assert frame["data"]["error"] == "invalid_payload"
    assert chat_store.appended == []


def test_unreachable_database_keeps_sender_connected(socket_app, mock_db_session, users):
    alice, bob = users
    mock_db_session.execute.side_effect = ConnectionRefusedError(111, "Connection refused")
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=mock_db_session)
    context.__aexit__ = AsyncMock(return_value=False)
    presence = socket_app.state.presence
    socket_app.state.relay = MessageRelay(
        presence, ChatService(session_factory=MagicMock(return_value=context))
    )
    frame = {
        "event": "send_message",
        "data": {"chatId": str(uuid.uuid4()), "senderId": alice, "recipientId": bob, "content": "hi"},
    }

    with TestClient(socket_app).websocket_connect("/ws/chat") as ws_alice:
        ws_alice.send_json({"event": "register", "data": alice})
        ws_alice.send_json(frame)
        first = ws_alice.receive_json()
        assert alice in presence

        ws_alice.send_json(frame)
        second = ws_alice.receive_json()

    assert first["event"] == second["event"] == "message_failed"
    assert first["data"]["error"] == "database_error"


@pytest.mark.parametrize("send_error", [WebSocketDisconnect(code=1006), RuntimeError("closed")])
def test_recipient_closed_mid_send_does_not_affect_sender(socket_app, client, chat_store, users, send_error):
    alice, bob = users
    chat_id = chat_store.add_chat([uuid.UUID(alice), uuid.UUID(bob)])
    closed_socket = MagicMock()
    closed_socket.send_json = AsyncMock(side_effect=send_error)
    socket_app.state.presence.register(bob, ChatSession(closed_socket))

    with client.websocket_connect("/ws/chat") as ws_alice:
        ws_alice.send_json({"event": "register", "data": alice})
        acks = []
        for text in ("first", "second"):
            ws_alice.send_json({
                "event": "send_message",
                "data": {"chatId": chat_id, "senderId": alice, "recipientId": bob, "content": text},
            })
            acks.append(ws_alice.receive_json())

    assert [ack["event"] for ack in acks] == ["message_sent", "message_sent"]
    assert [m["content"] for m in acks[-1]["data"]["messages"]] == ["first", "second"]
    assert closed_socket.send_json.await_count == 2
