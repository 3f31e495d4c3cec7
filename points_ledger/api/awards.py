"""
Award endpoints.

Called by the grading, homework and attendance subsystems.
Events may be delivered more than once; a repeat answers with
the transaction recorded the first time.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from points_ledger.api.common import http_error
from points_ledger.errors import PointsError
from points_ledger.models.base import get_db
from points_ledger.schemas.awards import (
    AttendanceStreakEvent,
    AwardResponse,
    GradePostedEvent,
    HomeworkSubmittedEvent,
)
from points_ledger.schemas.ledger import TransactionResponse
from points_ledger.services.award_service import AwardService
from points_ledger.services.locks import call_with_busy_retry

router = APIRouter(prefix="/awards", tags=["Awards"])


def _response(transactions) -> AwardResponse:
    return AwardResponse(
        awarded=bool(transactions),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
    )


@router.post("/grades", response_model=AwardResponse)
def grade_posted(
    event: GradePostedEvent,
    db: Session = Depends(get_db),
):
    service = AwardService(db)
    try:
        txn = call_with_busy_retry(
            lambda: service.on_grade_posted(
                event.student_id, event.grade_id, event.value
            )
        )
    except PointsError as e:
        raise http_error(e)
    return _response([txn] if txn else [])


@router.post("/homework", response_model=AwardResponse)
def homework_submitted(
    event: HomeworkSubmittedEvent,
    db: Session = Depends(get_db),
):
    service = AwardService(db)
    try:
        txn = call_with_busy_retry(
            lambda: service.on_homework_submitted(
                event.student_id,
                event.homework_id,
                submitted_at=event.submitted_at,
                deadline=event.deadline,
            )
        )
    except PointsError as e:
        raise http_error(e)
    return _response([txn] if txn else [])


@router.post("/attendance", response_model=AwardResponse)
def attendance_streak(
    event: AttendanceStreakEvent,
    db: Session = Depends(get_db),
):
    service = AwardService(db)
    try:
        transactions = call_with_busy_retry(
            lambda: service.on_attendance_streak(
                event.student_id, event.streak_length
            )
        )
    except PointsError as e:
        raise http_error(e)
    return _response(transactions)
