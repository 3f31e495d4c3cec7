"""
Pydantic schemas for academic events that earn points.

The emitting subsystem (grading, homework, attendance) must send
a stable, unique id per event; that id is the idempotency key.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from points_ledger.schemas.ledger import TransactionResponse


class GradePostedEvent(BaseModel):
    student_id: int
    grade_id: str = Field(min_length=1, max_length=100)
    value: int = Field(ge=1, le=5)


class HomeworkSubmittedEvent(BaseModel):
    student_id: int
    homework_id: str = Field(min_length=1, max_length=100)
    submitted_at: datetime | None = None
    deadline: datetime | None = None


class AttendanceStreakEvent(BaseModel):
    student_id: int
    streak_length: int = Field(ge=0)


class AwardResponse(BaseModel):
    """
    Outcome of an award event.

    awarded is False when the event did not qualify (grade below
    threshold, late homework with zero late points, no milestone).
    """
    awarded: bool
    transactions: list[TransactionResponse]
