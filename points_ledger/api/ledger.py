"""
Ledger endpoints for individual transactions.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from points_ledger.api.common import http_error
from points_ledger.errors import PointsError
from points_ledger.models.base import get_db
from points_ledger.schemas.ledger import ReversalRequest, TransactionResponse
from points_ledger.services.ledger_service import LedgerService
from points_ledger.services.locks import call_with_busy_retry

router = APIRouter(prefix="/transactions", tags=["Ledger"])


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        return service.get_transaction(transaction_id)
    except PointsError as e:
        raise http_error(e)


@router.post(
    "/{transaction_id}/reverse",
    response_model=TransactionResponse,
    status_code=201,
)
def reverse_transaction(
    transaction_id: int,
    request: ReversalRequest,
    db: Session = Depends(get_db),
):
    """
    Reverse an award or adjustment.

    The original transaction stays in the history; an offsetting
    transaction is appended. Reversing twice is a no-op that
    returns the first reversal.
    """
    service = LedgerService(db)
    try:
        return call_with_busy_retry(
            lambda: service.reverse_transaction(transaction_id, request.reason)
        )
    except PointsError as e:
        raise http_error(e)
