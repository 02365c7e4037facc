"""
XFound Backend — Item Service (Listings)
==========================================

What:  Create, browse, search, update and delete lost/found/exchange listings.
Why:   Listings are the marketplace's core record; chats always refer to one.
How:   Composes FileService (listing image) with the `items` table.
Who:   Called by the /api/items route handlers.

Listing Rules:
    - college_name must be one of VALID_COLLEGES
    - price is kept only when status is "Exchange"; otherwise it is stored as 0
      (re-applied on every update, since status may change)
    - every listing has an image; creation without one is rejected
    - only the owner may update or delete a listing

Image Lifecycle:
    create:  store image → insert row   (insert fails → stored image removed)
    update:  store new image → update row → remove old image
    delete:  remove image → delete row
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.models.item import Item
from app.schemas.item import VALID_COLLEGES, ItemResponse, ItemUpdate
from app.services.file_service import file_service

logger = logging.getLogger(__name__)

VALID_STATUSES = ("Lost", "Found", "Exchange")


class ImageUpload(NamedTuple):
    """An uploaded image as read from the multipart request."""
    filename: str
    content: bytes
    content_length: Optional[int] = None


def _effective_price(status: str, price: Optional[float]) -> float:
    if status == "Exchange" and price:
        return float(price)
    return 0.0


def _check_college(college_name: str) -> None:
    if college_name not in VALID_COLLEGES:
        raise ValidationError(
            message="Invalid college name",
            field="college_name",
            context={"allowed": list(VALID_COLLEGES)},
        )


def _check_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            message=f"Status must be one of {', '.join(VALID_STATUSES)}",
            field="status",
        )


class ItemService:
    """
    Business logic layer for listings.

    Stateless: the db session is passed into every call.
    """

    # ── Create ────────────────────────────────────────────────────────────

    async def create_item(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        *,
        name: str,
        description: str,
        category: str,
        location: str,
        college_name: str,
        status: str = "Lost",
        price: Optional[float] = None,
        image: Optional[ImageUpload] = None,
    ) -> ItemResponse:
        """
        Raises:
            ValidationError: missing/invalid image, unknown college or status
            DatabaseError:   insert failed (stored image is removed)
        """
        _check_college(college_name)
        _check_status(status)
        if image is None or not image.content:
            raise ValidationError(message="Please upload an image", field="image")

        absolute_path, relative_path = await file_service.validate_and_store(
            filename=image.filename,
            content=image.content,
            content_length=image.content_length,
        )

        try:
            item = Item(
                id=uuid.uuid4(),
                name=name,
                description=description,
                price=_effective_price(status, price),
                category=category,
                status=status,
                location=location,
                image_url=file_service.public_url(relative_path),
                image_path=relative_path,
                owner_id=owner_id,
                college_name=college_name,
                created_at=datetime.now(timezone.utc),
            )
            db.add(item)
            await db.flush()

        except SQLAlchemyError as e:
            await file_service.cleanup_file(absolute_path)
            logger.error("Failed to create item: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to create the listing. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Item created: %s (%s) by %s", item.id, item.status, owner_id)
        return ItemResponse.model_validate(item)

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_items(
        self, db: AsyncSession, college: Optional[str] = None
    ) -> List[ItemResponse]:
        """Newest first, optionally restricted to one college."""
        stmt = select(Item).order_by(Item.created_at.desc())
        if college:
            stmt = stmt.where(Item.college_name == college)
        return await self._fetch_all(db, stmt)

    async def search_items(self, db: AsyncSession, query: Optional[str]) -> List[ItemResponse]:
        """Case-insensitive substring match on name, description, category and college."""
        query = (query or "").strip()
        if not query:
            raise ValidationError(message="Search query is required", field="query")

        stmt = (
            select(Item)
            .where(
                or_(
                    Item.name.icontains(query, autoescape=True),
                    Item.description.icontains(query, autoescape=True),
                    Item.category.icontains(query, autoescape=True),
                    Item.college_name.icontains(query, autoescape=True),
                )
            )
            .order_by(Item.created_at.desc())
        )
        return await self._fetch_all(db, stmt)

    async def get_item(self, db: AsyncSession, item_id: uuid.UUID) -> ItemResponse:
        return ItemResponse.model_validate(await self._load(db, item_id))

    async def list_user_items(
        self, db: AsyncSession, user_id: uuid.UUID, current_user_id: uuid.UUID
    ) -> List[ItemResponse]:
        if user_id != current_user_id:
            raise ForbiddenError(message="Not authorized to view these items")
        stmt = select(Item).where(Item.owner_id == user_id).order_by(Item.created_at.desc())
        return await self._fetch_all(db, stmt)

    # ── Update / Delete ───────────────────────────────────────────────────

    async def update_item(
        self,
        db: AsyncSession,
        item_id: uuid.UUID,
        current_user_id: uuid.UUID,
        updates: ItemUpdate,
        image: Optional[ImageUpload] = None,
    ) -> ItemResponse:
        """Apply only the fields that were sent; optionally replace the image."""
        item = await self._load(db, item_id)
        if item.owner_id != current_user_id:
            raise ForbiddenError(message="Not authorized to update this item")

        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        if "college_name" in changes:
            _check_college(changes["college_name"])
        if "status" in changes:
            _check_status(changes["status"])

        new_path = None
        if image is not None and image.content:
            new_absolute, new_path = await file_service.validate_and_store(
                filename=image.filename,
                content=image.content,
                content_length=image.content_length,
            )

        old_path = item.image_path
        try:
            for field, value in changes.items():
                setattr(item, field, value)
            item.price = _effective_price(item.status, changes.get("price", item.price))
            if new_path:
                item.image_url = file_service.public_url(new_path)
                item.image_path = new_path
            await db.flush()

        except SQLAlchemyError as e:
            if new_path:
                await file_service.cleanup_file(new_absolute)
            logger.error("Failed to update item %s: %s", item_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to update the listing. Please try again.",
                context={"item_id": str(item_id), "error_type": type(e).__name__},
            )

        if new_path and old_path:
            await file_service.delete_relative(old_path)

        logger.info("Item %s updated (%s)", item_id, ", ".join(sorted(changes)) or "image")
        return ItemResponse.model_validate(item)

    async def delete_item(
        self, db: AsyncSession, item_id: uuid.UUID, current_user_id: uuid.UUID
    ) -> None:
        item = await self._load(db, item_id)
        if item.owner_id != current_user_id:
            raise ForbiddenError(message="Not authorized to delete this item")

        await file_service.delete_relative(item.image_path)
        try:
            await db.delete(item)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to delete item %s: %s", item_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to delete the listing. Please try again.",
                context={"item_id": str(item_id), "error_type": type(e).__name__},
            )
        logger.info("Item %s deleted by %s", item_id, current_user_id)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _load(self, db: AsyncSession, item_id: uuid.UUID) -> Item:
        try:
            item = await db.get(Item, item_id)
        except SQLAlchemyError as e:
            logger.error("Failed to fetch item %s: %s", item_id, str(e))
            raise DatabaseError(
                message="Failed to retrieve the listing. Please try again.",
                context={"item_id": str(item_id)},
            )
        if item is None:
            raise NotFoundError(resource="item", resource_id=str(item_id))
        return item

    async def _fetch_all(self, db: AsyncSession, stmt) -> List[ItemResponse]:
        try:
            result = await db.execute(stmt)
            return [ItemResponse.model_validate(i) for i in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Failed to list items: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to retrieve listings. Please try again.",
                context={"error_type": type(e).__name__},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
item_service = ItemService()
