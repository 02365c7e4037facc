"""
XFound Backend — Chat Route Handlers
======================================

What:  HTTP side of chats: open (or reuse) a conversation about an item,
       list the caller's conversations, read one conversation's history.
Why:   The socket only carries new messages; history and the inbox are
       fetched over HTTP when a page loads.
Who:   The frontend Chat and Inbox pages.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.chat import ChatCreateRequest, ChatListItem, ChatResponse
from app.schemas.common import ErrorResponse
from app.services.chat_service import chat_service

router = APIRouter(prefix="/api", tags=["Chats"])


@router.post(
    "/chats",
    response_model=ChatResponse,
    responses={
        400: {"description": "Fewer than two participants", "model": ErrorResponse},
        403: {"description": "Caller is not a participant", "model": ErrorResponse},
        404: {"description": "Item not found", "model": ErrorResponse},
    },
    summary="Get or create the chat about an item",
)
async def open_chat(
    body: ChatCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ChatResponse:
    return await chat_service.get_or_create_chat(
        db, current_user.id, body.item_id, body.participants
    )


@router.get(
    "/chats/user",
    response_model=List[ChatListItem],
    summary="All chats of the calling user, most recently active first",
)
async def list_my_chats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[ChatListItem]:
    return await chat_service.list_user_chats(db, current_user.id)


@router.get(
    "/chats/{chat_id}",
    response_model=ChatResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Full history of one chat",
)
async def get_chat(
    chat_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ChatResponse:
    return await chat_service.get_chat(db, chat_id, current_user.id)
