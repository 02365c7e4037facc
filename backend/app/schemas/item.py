"""
XFound Backend — Item Schemas
===============================

What:  Response model for listings and the constants that constrain them.
Why:   Item creation arrives as multipart form data (image + fields), so the
       routes read Form() parameters directly; this module owns the shared
       vocabulary (statuses, colleges) and the serialized shape.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field

ItemStatus = Literal["Lost", "Found", "Exchange"]

# Campuses the marketplace currently serves
VALID_COLLEGES: Tuple[str, ...] = ("SECT", "LTCE", "VJTI", "IITB", "SPIT", "TCOE")


class ItemResponse(BaseModel):
    """Full representation of a listing."""
    id: uuid.UUID
    name: str
    description: str
    price: float = Field(description="Asking price; always 0 unless status is Exchange")
    category: str
    status: ItemStatus
    location: str
    image_url: str = Field(description="URL path of the listing image")
    owner_id: uuid.UUID
    college_name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ItemUpdate(BaseModel):
    """
    Partial update for PUT /api/items/{id}.

    Only fields that were sent are applied (model_dump(exclude_unset=True)).
    """
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    status: Optional[ItemStatus] = None
    location: Optional[str] = None
    college_name: Optional[str] = None
