"""
XFound Backend — Item SQLAlchemy Model
========================================

What:  ORM model representing the `items` table (lost, found or exchange listings).
Who:   Used by ItemService for CRUD/search and by ChatService to populate chats.

Table Design Rationale:
    - status: 'Lost' | 'Found' | 'Exchange'; price only meaningful for 'Exchange'
    - college_name: restricted to the supported campuses (validated in schemas)
    - image_url: URL path served by GET /api/files/{path}
    - image_path: storage-relative path, kept so deletes can remove the file

    Index on created_at DESC:
        Every listing endpoint returns newest items first.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP

from app.database import Base


class Item(Base):
    """A listing posted by a user."""

    __tablename__ = "items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False), nullable=False, default=0, server_default=text("0"),
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Lost", server_default=text("'Lost'"),
    )
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[str] = mapped_column(String(512), nullable=False)
    image_path: Mapped[str | None] = mapped_column(String(255), nullable=True)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    college_name: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_items_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, name='{self.name}', status='{self.status}')>"
