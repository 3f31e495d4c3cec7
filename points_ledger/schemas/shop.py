"""
Pydantic schemas for the shop catalog and purchases.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from points_ledger.models.enums import PurchaseStatus, ShopCategory


# --- Catalog Schemas ---

class ShopItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    cost: int = Field(gt=0)
    category: ShopCategory
    stock: int | None = Field(default=None, ge=0)
    popularity: int = Field(default=0, ge=0, le=100)


class ShopItemResponse(BaseModel):
    id: int
    name: str
    description: str
    cost: int
    category: ShopCategory
    stock: int | None
    in_stock: bool
    popularity: int
    is_active: bool

    model_config = {"from_attributes": True}


# --- Purchase Schemas ---

class PurchaseRequest(BaseModel):
    student_id: int
    item_id: int


class PurchaseStatusUpdate(BaseModel):
    new_status: PurchaseStatus


class PurchaseResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    student_id: int
    item_id: int
    transaction_id: int
    cost: int
    status: PurchaseStatus
    created_at: datetime
    delivered_at: datetime | None

    model_config = {"from_attributes": True}


class PurchaseReceipt(BaseModel):
    """Response returned after a completed purchase."""
    purchase: PurchaseResponse
    remaining_balance: int
