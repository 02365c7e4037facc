"""
XFound Backend — Chat & ChatMessage SQLAlchemy Models
=======================================================

What:  ORM models for conversations (`chats`) and their messages (`chat_messages`).
Why:   A chat is the durable record the real-time relay appends to; clients
       that were offline fetch it later through the chats HTTP endpoints.

Table Design Rationale:
    - participant_ids: UUID[] so "chats containing all of these users" is a
      single `@>` predicate and "chats of user X" is `X = ANY(...)`
    - chat_messages.id: BIGSERIAL; ordering by id is creation order, so the
      message sequence needs no separate timestamp comparison
    - messages are append-only; nothing updates or deletes a message row
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import BigInteger, ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import ARRAY, UUID, TIMESTAMP

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Chat(Base):
    """
    A conversation between users about one item.

    Lifecycle:
        1. Created lazily by POST /api/chats (empty message list)
        2. Grows by one ChatMessage per relayed `send_message`
        3. updated_at bumped on every append (drives "recent chats" ordering)
    """

    __tablename__ = "chats"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_ids: Mapped[List[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    messages: Mapped[List["ChatMessage"]] = relationship(
        back_populates="chat",
        order_by="ChatMessage.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_chats_participants", participant_ids, postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"<Chat(id={self.id}, item_id={self.item_id})>"


class ChatMessage(Base):
    """One message inside a chat."""

    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    chat_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    chat: Mapped[Chat] = relationship(back_populates="messages")
