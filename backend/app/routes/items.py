"""
XFound Backend — Item Route Handlers
======================================

What:  CRUD and search for listings under /api/items.
How:   Create and update arrive as multipart/form-data (fields + `image`);
       the handler reads the upload and hands everything to ItemService.

Route order matters: /items/search and /items/user/{id} are declared before
/items/{item_id}, otherwise "search" would be parsed as an item id.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.item import ItemResponse, ItemStatus, ItemUpdate
from app.services.item_service import ImageUpload, item_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Items"])


async def _read_upload(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    if image is None or not image.filename:
        return None
    try:
        content = await image.read()
    finally:
        await image.close()
    logger.info("Received image upload: filename=%s, size=%d bytes", image.filename, len(content))
    return ImageUpload(filename=image.filename, content=content, content_length=image.size)


@router.post(
    "/items",
    status_code=201,
    response_model=ItemResponse,
    responses={
        400: {"description": "Invalid image or college", "model": ErrorResponse},
        401: {"model": ErrorResponse},
    },
    summary="Post a lost, found or exchange listing",
)
async def create_item(
    name: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    location: str = Form(...),
    college_name: str = Form(...),
    status: ItemStatus = Form("Lost"),
    price: Optional[float] = Form(None, ge=0),
    image: Optional[UploadFile] = File(None, description="PNG, JPG, JPEG or GIF, max 5MB"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ItemResponse:
    return await item_service.create_item(
        db,
        current_user.id,
        name=name,
        description=description,
        category=category,
        location=location,
        college_name=college_name,
        status=status,
        price=price,
        image=await _read_upload(image),
    )


@router.get("/items", response_model=List[ItemResponse], summary="List listings, newest first")
async def list_items(
    college: Optional[str] = Query(default=None, description="Only listings from this college"),
    db: AsyncSession = Depends(get_db_session),
) -> List[ItemResponse]:
    return await item_service.list_items(db, college)


@router.get(
    "/items/search",
    response_model=List[ItemResponse],
    responses={400: {"description": "Missing query", "model": ErrorResponse}},
    summary="Search listings by name, description, category or college",
)
async def search_items(
    query: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> List[ItemResponse]:
    return await item_service.search_items(db, query)


@router.get(
    "/items/user/{user_id}",
    response_model=List[ItemResponse],
    responses={403: {"model": ErrorResponse}},
    summary="Listings posted by the calling user",
)
async def list_user_items(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[ItemResponse]:
    return await item_service.list_user_items(db, user_id, current_user.id)


@router.get(
    "/items/{item_id}",
    response_model=ItemResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a single listing",
)
async def get_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ItemResponse:
    return await item_service.get_item(db, item_id)


@router.put(
    "/items/{item_id}",
    response_model=ItemResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Update a listing (owner only)",
)
async def update_item(
    item_id: UUID,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    college_name: Optional[str] = Form(None),
    status: Optional[ItemStatus] = Form(None),
    price: Optional[float] = Form(None, ge=0),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ItemResponse:
    sent = {
        "name": name,
        "description": description,
        "category": category,
        "location": location,
        "college_name": college_name,
        "status": status,
        "price": price,
    }
    updates = ItemUpdate(**{k: v for k, v in sent.items() if v is not None})
    return await item_service.update_item(
        db, item_id, current_user.id, updates, image=await _read_upload(image)
    )


@router.delete(
    "/items/{item_id}",
    response_model=MessageResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Delete a listing and its image (owner only)",
)
async def delete_item(
    item_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await item_service.delete_item(db, item_id, current_user.id)
    return MessageResponse(message="Item deleted")
