"""
XFound Backend — Chat Schemas
===============================

What:  HTTP models for the chats endpoints and the payloads of the chat socket.
Why:   The same ChatResponse snapshot is returned by HTTP history queries and
       pushed over the socket in `receive_message` / `message_sent` events,
       so clients render both with one code path.

Socket payload keys are camelCase (chatId, senderId, recipientId) to match
what the web client already emits; Python attributes stay snake_case.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from app.schemas.item import ItemResponse
from app.schemas.user import UserPublic


# ══════════════════════════════════════════════════════════════════════════
# HTTP models
# ══════════════════════════════════════════════════════════════════════════


class ChatCreateRequest(BaseModel):
    """Body of POST /api/chats."""
    item_id: uuid.UUID = Field(alias="itemId")
    participants: List[uuid.UUID]

    model_config = {"populate_by_name": True}


class ChatMessageResponse(BaseModel):
    id: int
    sender_id: uuid.UUID
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatResponse(BaseModel):
    """
    Conversation snapshot.

    messages are in creation order (oldest first).
    """
    id: uuid.UUID
    item_id: uuid.UUID
    participants: List[uuid.UUID]
    messages: List[ChatMessageResponse]
    created_at: datetime
    updated_at: datetime


class ChatListItem(ChatResponse):
    """A chat with its item and participant profiles populated."""
    item: Optional[ItemResponse] = None
    participant_profiles: List[UserPublic] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Socket payloads
# ══════════════════════════════════════════════════════════════════════════


class SocketFrame(BaseModel):
    """Envelope of every frame in both directions: {"event": ..., "data": ...}."""
    event: str
    data: Any = None


class RegisterPayload(BaseModel):
    user_id: str = Field(min_length=1, alias="userId")

    model_config = {"populate_by_name": True}


class SendMessagePayload(BaseModel):
    """Data of an inbound `send_message` event."""
    chat_id: str = Field(min_length=1, alias="chatId")
    sender_id: str = Field(min_length=1, alias="senderId")
    recipient_id: str = Field(min_length=1, alias="recipientId")
    content: str = Field(min_length=1, max_length=5000)

    model_config = {"populate_by_name": True}
