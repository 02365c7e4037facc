"""Create marketplace tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  users, auth_tokens, items, chats, chat_messages.
How:   PostgreSQL-specific: UUID keys (gen_random_uuid), TIMESTAMPTZ,
       UUID[] participants with a GIN index, BIGSERIAL message ids.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, comment="Stored lowercased"),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "avatar", sa.String(255), nullable=False,
            server_default=sa.text("'default-avatar.jpg'"),
        ),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("rating_average", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "role", sa.String(20), nullable=False, server_default=sa.text("'user'"),
            comment="user | admin",
        ),
        sa.Column("reset_password_token", sa.String(64), nullable=True),
        sa.Column("reset_password_expires", sa.TIMESTAMP(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(
        "ix_users_reset_password_token", "users", ["reset_password_token"],
    )

    op.create_table(
        "auth_tokens",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("token", sa.Text(), nullable=False, comment="Active bearer token; deleted on logout"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token"),
    )
    op.create_index("ix_auth_tokens_user_id", "auth_tokens", ["user_id"])

    op.create_table(
        "items",
        _uuid_pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0"),
            comment="Non-zero only for Exchange listings",
        ),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default=sa.text("'Lost'"),
            comment="Lost | Found | Exchange",
        ),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("image_url", sa.String(512), nullable=False),
        sa.Column("image_path", sa.String(255), nullable=True),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("college_name", sa.String(10), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_items_owner_id", "items", ["owner_id"])
    op.create_index("ix_items_college_name", "items", ["college_name"])
    op.create_index("idx_items_created_at", "items", [sa.text("created_at DESC")])

    op.create_table(
        "chats",
        _uuid_pk(),
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "participant_ids",
            postgresql.ARRAY(postgresql.UUID(as_uuid=True)),
            nullable=False,
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_chats_item_id", "chats", ["item_id"])
    op.create_index(
        "idx_chats_participants", "chats", ["participant_ids"], postgresql_using="gin",
    )

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("chat_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_chat_messages_chat_id", "chat_messages", ["chat_id"])


def downgrade() -> None:
    op.drop_index("ix_chat_messages_chat_id", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("idx_chats_participants", table_name="chats")
    op.drop_index("ix_chats_item_id", table_name="chats")
    op.drop_table("chats")
    op.drop_index("idx_items_created_at", table_name="items")
    op.drop_index("ix_items_college_name", table_name="items")
    op.drop_index("ix_items_owner_id", table_name="items")
    op.drop_table("items")
    op.drop_index("ix_auth_tokens_user_id", table_name="auth_tokens")
    op.drop_table("auth_tokens")
    op.drop_index("ix_users_reset_password_token", table_name="users")
    op.drop_table("users")
