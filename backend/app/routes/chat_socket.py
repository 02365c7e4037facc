"""
XFound Backend — Chat WebSocket Endpoint
==========================================

What:  /ws/chat, the real-time channel of the chat feature.
How:   Each accepted socket is wrapped in a ChatSession and fed to the
       MessageRelay held on app.state. Frames are JSON envelopes
       {"event": ..., "data": ...} in both directions.

Inbound events:
    register       data: "<userId>" or {"userId": "<userId>"}
    send_message   data: {"chatId", "senderId", "recipientId", "content"}

Outbound events:
    receive_message / message_sent / message_failed (from the relay)
    error          malformed frame or unknown event, sent to this socket only

Frames from one socket are processed one at a time, in arrival order: the
loop awaits each handler before reading the next frame.
"""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from app.dependencies import get_relay
from app.schemas.chat import RegisterPayload, SendMessagePayload, SocketFrame
from app.services.message_relay import MessageRelay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat socket"])

REGISTER = "register"
SEND_MESSAGE = "send_message"
ERROR = "error"


class ChatSession:
    """One connected socket, as seen by the relay and presence directory."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.session_id = uuid.uuid4().hex[:12]

    async def emit(self, event: str, data: Any) -> None:
        """
        Send one frame. A socket that closed meanwhile is logged and
        skipped; the relay never sees transport errors.
        """
        try:
            await self.websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.warning(
                "Dropped '%s' for closed session %s: %s", event, self.session_id, str(e)
            )

    def __repr__(self) -> str:
        return f"<ChatSession {self.session_id}>"


async def _handle_frame(relay: MessageRelay, session: ChatSession, raw: str) -> None:
    try:
        frame = SocketFrame.model_validate_json(raw)
    except PydanticValidationError:
        await session.emit(ERROR, {"error": "invalid_frame", "message": "Expected {\"event\", \"data\"} JSON"})
        return

    if frame.event == REGISTER:
        data = frame.data if isinstance(frame.data, dict) else {"userId": frame.data}
        try:
            payload = RegisterPayload.model_validate(data)
        except PydanticValidationError:
            await session.emit(ERROR, {"error": "invalid_payload", "message": "register needs a userId"})
            return
        relay.register(session, payload.user_id)

    elif frame.event == SEND_MESSAGE:
        try:
            payload = SendMessagePayload.model_validate(frame.data)
        except PydanticValidationError as e:
            await session.emit(
                ERROR,
                {
                    "error": "invalid_payload",
                    "message": "send_message needs chatId, senderId, recipientId and content",
                    "details": e.errors(include_url=False, include_context=False),
                },
            )
            return
        await relay.handle_incoming(
            session,
            chat_id=payload.chat_id,
            sender_id=payload.sender_id,
            recipient_id=payload.recipient_id,
            content=payload.content,
        )

    else:
        await session.emit(ERROR, {"error": "unknown_event", "message": f"Unknown event '{frame.event}'"})


@router.websocket("/ws/chat")
async def chat_socket(
    websocket: WebSocket,
    relay: MessageRelay = Depends(get_relay),
) -> None:
    await websocket.accept()
    session = ChatSession(websocket)
    logger.info("Socket connected: session %s", session.session_id)

    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_frame(relay, session, raw)
    except WebSocketDisconnect:
        logger.info("Socket disconnected: session %s", session.session_id)
    finally:
        relay.disconnect(session)
