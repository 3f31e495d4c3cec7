"""
Student endpoints: enrollment, points card, history and purchases.

The display layer reads from here. Values are snapshots; the
only writes are enrollment and administrative adjustments.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from points_ledger.api.common import http_error
from points_ledger.errors import PointsError
from points_ledger.models.base import get_db
from points_ledger.models.enums import SourceKind
from points_ledger.schemas.ledger import (
    AuditEventResponse,
    HistoryResponse,
    ManualAdjustmentRequest,
    PointsSummaryResponse,
    TransactionInput,
    TransactionResponse,
)
from points_ledger.schemas.shop import PurchaseResponse
from points_ledger.schemas.student import StudentCreate, StudentResponse
from points_ledger.services.audit import events_for_student
from points_ledger.services.ledger_service import LedgerService, today
from points_ledger.services.locks import call_with_busy_retry
from points_ledger.services.redemption_service import RedemptionService
from points_ledger.services.student_service import StudentService

router = APIRouter(prefix="/students", tags=["Students"])


@router.post("", response_model=StudentResponse, status_code=201)
def create_student(
    request: StudentCreate,
    db: Session = Depends(get_db),
):
    """Enroll a new student."""
    service = StudentService(db)
    try:
        student = service.create_student(request)
        db.commit()
        return student
    except PointsError as e:
        db.rollback()
        raise http_error(e)


@router.get("/{student_id}", response_model=StudentResponse)
def get_student(
    student_id: int,
    db: Session = Depends(get_db),
):
    service = StudentService(db)
    try:
        return service.get_student(student_id)
    except PointsError as e:
        raise http_error(e)


@router.get("/{student_id}/points", response_model=PointsSummaryResponse)
def get_points(
    student_id: int,
    db: Session = Depends(get_db),
):
    """Total balance and points earned today."""
    service = LedgerService(db)
    try:
        account = service.get_account(student_id)
    except PointsError as e:
        raise http_error(e)

    return PointsSummaryResponse(
        student_id=student_id,
        total_points=account.total_points,
        earned_today=account.earned_on(today()),
    )


@router.get("/{student_id}/points/integrity")
def check_points_integrity(
    student_id: int,
    db: Session = Depends(get_db),
):
    """Compare the cached balance against the sum of the ledger."""
    service = LedgerService(db)
    try:
        return service.check_integrity(student_id)
    except PointsError as e:
        raise http_error(e)


@router.get("/{student_id}/transactions", response_model=HistoryResponse)
def get_history(
    student_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """Points history, newest first."""
    service = LedgerService(db)
    try:
        transactions = service.get_history(student_id, limit=limit, offset=offset)
    except PointsError as e:
        raise http_error(e)

    return HistoryResponse(
        student_id=student_id,
        limit=limit,
        offset=offset,
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
    )


@router.post(
    "/{student_id}/adjustments",
    response_model=TransactionResponse,
    status_code=201,
)
def post_adjustment(
    student_id: int,
    request: ManualAdjustmentRequest,
    db: Session = Depends(get_db),
):
    """
    Post a manual correction.

    Repeating a request with the same idempotency_key returns the
    transaction posted the first time.
    """
    service = LedgerService(db)
    tx = TransactionInput(
        student_id=student_id,
        source_kind=SourceKind.MANUAL_ADJUSTMENT,
        source_event_id=request.idempotency_key,
        amount=request.amount,
        description=request.description,
    )
    try:
        return call_with_busy_retry(lambda: service.record(tx))
    except PointsError as e:
        raise http_error(e)


@router.get("/{student_id}/purchases", response_model=list[PurchaseResponse])
def get_purchases(
    student_id: int,
    db: Session = Depends(get_db),
):
    """A student's purchases, newest first."""
    service = RedemptionService(db)
    try:
        return service.get_purchases(student_id)
    except PointsError as e:
        raise http_error(e)


@router.get("/{student_id}/audit", response_model=list[AuditEventResponse])
def get_audit_events(
    student_id: int,
    event_type: str | None = None,
    db: Session = Depends(get_db),
):
    """Audit trail for one student, including rejected purchases."""
    try:
        StudentService(db).get_student(student_id)
    except PointsError as e:
        raise http_error(e)
    return events_for_student(db, student_id, event_type=event_type)
