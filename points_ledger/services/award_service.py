"""
Award service: academic events in, earning transactions out.

Each handler decides whether the event qualifies and for how
many points, then appends through LedgerService inside the
student's unit of work. The source event id is the idempotency
key, so a redelivered event hands back the original transaction
instead of awarding twice.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from points_ledger.config import Settings, get_settings
from points_ledger.models.enums import SourceKind
from points_ledger.models.points_transaction import PointsTransaction
from points_ledger.schemas.ledger import TransactionInput
from points_ledger.services.ledger_service import LedgerService
from points_ledger.services.locks import student_key, unit_of_work

logger = logging.getLogger(__name__)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class AwardService:

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.ledger_service = LedgerService(db)

    def _award(
        self,
        student_id: int,
        source_kind: SourceKind,
        source_event_id: str,
        amount: int,
        description: str,
    ) -> PointsTransaction:
        with unit_of_work(self.db, [student_key(student_id)]):
            txn = self.ledger_service.append_transaction(TransactionInput(
                student_id=student_id,
                source_kind=source_kind,
                source_event_id=source_event_id,
                amount=amount,
                description=description,
            ))
        logger.info(
            "awarded %+d to student %s for %s:%s",
            txn.amount, student_id, source_kind.value, source_event_id,
        )
        return txn

    def on_grade_posted(
        self, student_id: int, grade_id: str, value: int
    ) -> PointsTransaction | None:
        """
        Award points for a grade at or above the threshold.

        Re-grading the same assessment (same grade_id) never awards
        again unless the earlier award was reversed.
        """
        self.ledger_service.get_student(student_id)
        if value < self.settings.GRADE_AWARD_THRESHOLD:
            logger.debug(
                "grade %s=%s below threshold %s, no award",
                grade_id, value, self.settings.GRADE_AWARD_THRESHOLD,
            )
            return None

        return self._award(
            student_id,
            SourceKind.GRADE,
            grade_id,
            self.settings.GRADE_AWARD_POINTS,
            f"Grade {value} posted",
        )

    def on_homework_submitted(
        self,
        student_id: int,
        homework_id: str,
        submitted_at: datetime | None = None,
        deadline: datetime | None = None,
    ) -> PointsTransaction | None:
        """
        Award points for a homework submission.

        On time (no deadline, or submitted_at <= deadline) earns the
        on-time amount; late earns the late amount, and a late
        amount of zero means no transaction at all.
        """
        self.ledger_service.get_student(student_id)
        submitted_at = _as_naive_utc(submitted_at or datetime.utcnow())
        on_time = deadline is None or submitted_at <= _as_naive_utc(deadline)

        if on_time:
            amount = self.settings.HOMEWORK_ON_TIME_POINTS
            description = "Homework submitted on time"
        else:
            amount = self.settings.HOMEWORK_LATE_POINTS
            description = "Homework submitted late"

        if amount <= 0:
            logger.debug("homework %s late, no award", homework_id)
            return None

        return self._award(
            student_id, SourceKind.HOMEWORK, homework_id, amount, description
        )

    def on_attendance_streak(
        self, student_id: int, streak_length: int
    ) -> list[PointsTransaction]:
        """
        Award every configured milestone the streak has reached.

        Each milestone is keyed "<student_id>:<milestone>" so it pays
        out once per student, however often the streak is reported.
        Returns the milestone transactions, lowest first; milestones
        already paid come back as their original transactions.
        """
        self.ledger_service.get_student(student_id)
        reached = [
            (length, points)
            for length, points in self.settings.ATTENDANCE_MILESTONES.items()
            if length <= streak_length
        ]
        if not reached:
            return []

        awarded = []
        with unit_of_work(self.db, [student_key(student_id)]):
            for length, points in reached:
                awarded.append(self.ledger_service.append_transaction(
                    TransactionInput(
                        student_id=student_id,
                        source_kind=SourceKind.ATTENDANCE,
                        source_event_id=f"{student_id}:{length}",
                        amount=points,
                        description=f"Attendance streak: {length} days",
                    )
                ))
        logger.info(
            "attendance streak %d for student %s, milestones %s",
            streak_length, student_id, [length for length, _ in reached],
        )
        return awarded
