"""
XFound Backend — Chat Service
===============================

What:  Conversation persistence: create-or-get, listing, history, and the
       atomic message append used by the real-time relay.
Why:   One service owns the `chats`/`chat_messages` tables, so the HTTP API
       and the socket relay can never disagree on how a chat is stored.
How:   Request-scoped work receives the route's AsyncSession; the relay's
       append opens its own session from the factory because socket frames
       have no request scope.

Atomic append:
    SELECT chat ... FOR UPDATE   (row lock; missing row → NotFoundError)
    INSERT chat_messages ...     (BIGSERIAL id = message order)
    UPDATE chats SET updated_at
    COMMIT
    → reload the chat with its messages as the snapshot

    Concurrent appends to one chat serialize on the row lock and each
    produce their own snapshot; appends to different chats never block.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session_factory
from app.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    XFoundError,
)
from app.models.chat import Chat, ChatMessage
from app.models.item import Item
from app.models.user import User
from app.schemas.chat import ChatListItem, ChatMessageResponse, ChatResponse
from app.schemas.item import ItemResponse
from app.schemas.user import UserPublic
from app.services.chat_store import ChatStore

logger = logging.getLogger(__name__)


def _parse_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def to_chat_response(chat: Chat) -> ChatResponse:
    return ChatResponse(
        id=chat.id,
        item_id=chat.item_id,
        participants=list(chat.participant_ids),
        messages=[ChatMessageResponse.model_validate(m) for m in chat.messages],
        created_at=chat.created_at,
        updated_at=chat.updated_at,
    )


class ChatService(ChatStore):
    """
    Business logic for conversations.

    Responsibilities:
        - get_or_create_chat(): POST /api/chats
        - list_user_chats():    GET /api/chats/user
        - get_chat():           GET /api/chats/{id}
        - append_message():     ChatStore contract, used by MessageRelay
    """

    def __init__(self, session_factory: Callable[[], AsyncSession] = async_session_factory):
        self._session_factory = session_factory

    # ══════════════════════════════════════════════════════════════════════
    # HTTP operations
    # ══════════════════════════════════════════════════════════════════════

    async def get_or_create_chat(
        self,
        db: AsyncSession,
        current_user_id: uuid.UUID,
        item_id: uuid.UUID,
        participants: Iterable[uuid.UUID],
    ) -> ChatResponse:
        """
        Return the chat about `item_id` whose participants include all of
        `participants`, creating an empty one when none exists.

        Raises:
            ValidationError: fewer than two distinct participants
            ForbiddenError:  the caller is not one of the participants
            NotFoundError:   the item does not exist
        """
        # dict.fromkeys keeps first-seen order while removing duplicates
        unique = list(dict.fromkeys(participants))
        if len(unique) < 2:
            raise ValidationError(
                message="A chat needs at least two distinct participants",
                field="participants",
            )
        if current_user_id not in unique:
            raise ForbiddenError(message="You can only open chats you take part in")

        try:
            item = await db.get(Item, item_id)
            if item is None:
                raise NotFoundError(resource="item", resource_id=str(item_id))

            result = await db.execute(
                select(Chat)
                .where(Chat.item_id == item_id)
                .where(Chat.participant_ids.contains(unique))
                .limit(1)
            )
            chat = result.scalars().first()

            if chat is None:
                now = datetime.now(timezone.utc)
                chat = Chat(
                    id=uuid.uuid4(),
                    item_id=item_id,
                    participant_ids=unique,
                    created_at=now,
                    updated_at=now,
                    messages=[],
                )
                db.add(chat)
                await db.flush()
                logger.info("Chat %s created for item %s", chat.id, item_id)

            return to_chat_response(chat)

        except XFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error opening chat for item %s: %s", item_id, str(e))
            raise DatabaseError(
                message="Could not open the chat. Please try again.",
                context={"item_id": str(item_id), "error_type": type(e).__name__},
            )

    async def list_user_chats(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> List[ChatListItem]:
        """
        All chats `user_id` takes part in, most recently active first, with
        the item and the participants' public profiles populated.
        """
        try:
            result = await db.execute(
                select(Chat)
                .where(Chat.participant_ids.any(user_id))
                .order_by(Chat.updated_at.desc())
            )
            chats = list(result.scalars().all())
            if not chats:
                return []

            item_ids = {c.item_id for c in chats}
            user_ids = {uid for c in chats for uid in c.participant_ids}

            items_result = await db.execute(select(Item).where(Item.id.in_(item_ids)))
            items = {i.id: i for i in items_result.scalars().all()}

            users_result = await db.execute(select(User).where(User.id.in_(user_ids)))
            users = {u.id: u for u in users_result.scalars().all()}

        except SQLAlchemyError as e:
            logger.error("Database error listing chats of %s: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve chats. Please try again.",
                context={"error_type": type(e).__name__},
            )

        listing = []
        for chat in chats:
            base = to_chat_response(chat)
            item = items.get(chat.item_id)
            listing.append(
                ChatListItem(
                    **base.model_dump(),
                    item=ItemResponse.model_validate(item) if item else None,
                    participant_profiles=[
                        UserPublic.model_validate(users[uid])
                        for uid in chat.participant_ids
                        if uid in users
                    ],
                )
            )
        return listing

    async def get_chat(
        self, db: AsyncSession, chat_id: uuid.UUID, user_id: uuid.UUID
    ) -> ChatResponse:
        """Full history of one chat; only participants may read it."""
        try:
            chat = await db.get(Chat, chat_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching chat %s: %s", chat_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the chat. Please try again.",
                context={"chat_id": str(chat_id)},
            )

        if chat is None:
            raise NotFoundError(resource="chat", resource_id=str(chat_id))
        if user_id not in chat.participant_ids:
            raise ForbiddenError(message="You are not a participant of this chat")
        return to_chat_response(chat)

    # ══════════════════════════════════════════════════════════════════════
    # ChatStore contract (real-time relay)
    # ══════════════════════════════════════════════════════════════════════

    async def append_message(
        self, chat_id: str, sender_id: str, content: str
    ) -> ChatResponse:
        chat_uuid = _parse_uuid(chat_id)
        if chat_uuid is None:
            raise NotFoundError(resource="chat", resource_id=str(chat_id))
        sender_uuid = _parse_uuid(sender_id)
        if sender_uuid is None:
            raise ValidationError(message="Invalid sender id", field="senderId")

        async with self._session_factory() as db:
            try:
                result = await db.execute(
                    select(Chat).where(Chat.id == chat_uuid).with_for_update()
                )
                chat = result.scalars().first()
                if chat is None:
                    raise NotFoundError(resource="chat", resource_id=str(chat_id))

                db.add(ChatMessage(chat_id=chat_uuid, sender_id=sender_uuid, content=content))
                chat.updated_at = datetime.now(timezone.utc)
                await db.commit()

                # Reload so the snapshot carries every message, including
                # ones appended concurrently by the other participant
                result = await db.execute(
                    select(Chat)
                    .where(Chat.id == chat_uuid)
                    .execution_options(populate_existing=True)
                )
                snapshot = to_chat_response(result.scalars().one())
                logger.debug(
                    "Appended message to chat %s (%d messages)", chat_id, len(snapshot.messages)
                )
                return snapshot

            except XFoundError:
                await db.rollback()
                raise
            except (SQLAlchemyError, OSError) as e:
                # asyncpg connection failures surface as OSError, not wrapped
                await db.rollback()
                raise DatabaseError(
                    message="Could not store the message. Please try again.",
                    context={"chat_id": str(chat_id), "error_type": type(e).__name__},
                )


# ── Singleton Instance ────────────────────────────────────────────────────
chat_service = ChatService()
