"""
XFound Backend — User & AuthToken SQLAlchemy Models
=====================================================

What:  ORM models for the `users` and `auth_tokens` tables.
Why:   Accounts own items and take part in chats; issued access tokens are
       recorded so that logout can revoke a token before it expires.
Who:   Used by AuthService and the `get_current_user` dependency.

Table Design Rationale:
    - email stored lowercased and unique (login is case-insensitive)
    - password_hash is never serialized by any response schema
    - reset_password_token/expires are NULL unless a reset is pending
    - auth_tokens rows are deleted on logout and cascade with the user
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A marketplace account.

    Lifecycle:
        1. Created on signup (password hashed by AuthService)
        2. Gains an AuthToken row on every login
        3. reset_password_* set by forgot-password, cleared by reset-password
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    username: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    avatar: Mapped[str] = mapped_column(
        String(255), nullable=False, default="default-avatar.jpg",
        server_default=text("'default-avatar.jpg'"),
    )
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Denormalized rating summary shown on public profiles
    rating_average: Mapped[float] = mapped_column(
        Numeric(3, 2, asdecimal=False), nullable=False, default=0, server_default=text("0"),
    )
    rating_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )

    # Values: 'user' | 'admin'
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="user", server_default=text("'user'"),
    )

    reset_password_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reset_password_expires: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True,
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
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    tokens: Mapped[List["AuthToken"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"


class AuthToken(Base):
    """An access token issued at login and still considered active."""

    __tablename__ = "auth_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    user: Mapped[User] = relationship(back_populates="tokens")
