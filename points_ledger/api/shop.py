"""
Shop endpoints: catalog browsing and purchases.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from points_ledger.api.common import http_error
from points_ledger.errors import PointsError
from points_ledger.models.base import get_db
from points_ledger.models.enums import ShopCategory
from points_ledger.schemas.shop import (
    PurchaseReceipt,
    PurchaseRequest,
    PurchaseResponse,
    PurchaseStatusUpdate,
    ShopItemResponse,
)
from points_ledger.services.catalog_service import CatalogService
from points_ledger.services.locks import call_with_busy_retry
from points_ledger.services.redemption_service import RedemptionService

router = APIRouter(prefix="/shop", tags=["Shop"])


@router.get("/items", response_model=list[ShopItemResponse])
def list_items(
    category: ShopCategory | None = None,
    db: Session = Depends(get_db),
):
    """Active catalog items, most popular first."""
    return CatalogService(db).list_items(category=category)


@router.get("/items/{item_id}", response_model=ShopItemResponse)
def get_item(
    item_id: int,
    db: Session = Depends(get_db),
):
    try:
        return CatalogService(db).get_item(item_id)
    except PointsError as e:
        raise http_error(e)


@router.post("/purchases", response_model=PurchaseReceipt, status_code=201)
def purchase(
    request: PurchaseRequest,
    db: Session = Depends(get_db),
):
    """
    Buy one unit of an item.

    A denied purchase (unknown student or item, not enough
    points, sold out) answers 404 or 409 and changes nothing.
    """
    service = RedemptionService(db)
    try:
        result = call_with_busy_retry(
            lambda: service.purchase(request.student_id, request.item_id)
        )
        remaining = service.ledger_service.get_balance(request.student_id)
    except PointsError as e:
        raise http_error(e)

    return PurchaseReceipt(
        purchase=PurchaseResponse.model_validate(result),
        remaining_balance=remaining,
    )


@router.patch("/purchases/{purchase_id}/status", response_model=PurchaseResponse)
def change_purchase_status(
    purchase_id: int,
    request: PurchaseStatusUpdate,
    db: Session = Depends(get_db),
):
    """Advance a purchase through its fulfilment lifecycle."""
    service = RedemptionService(db)
    try:
        result = service.advance_status(purchase_id, request.new_status)
        db.commit()
        return result
    except PointsError as e:
        db.rollback()
        raise http_error(e)
