"""
Tests for the AwardService.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_student
from points_ledger.config import Settings
from points_ledger.errors import NotFound
from points_ledger.models.enums import SourceKind
from points_ledger.services.award_service import AwardService
from points_ledger.services.ledger_service import LedgerService


@pytest.fixture
def settings():
    """Settings with the default award table, isolated per test."""
    s = Settings()
    s.GRADE_AWARD_THRESHOLD = 4
    s.GRADE_AWARD_POINTS = 10
    s.HOMEWORK_ON_TIME_POINTS = 5
    s.HOMEWORK_LATE_POINTS = 0
    s.ATTENDANCE_MILESTONES = {5: 5, 10: 15, 30: 50}
    return s


class TestGradePosted:

    def test_grade_at_threshold_awards(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        txn = service.on_grade_posted(student.id, "g1", 4)

        assert txn.amount == 10
        assert txn.source_kind == SourceKind.GRADE
        assert txn.source_event_id == "g1"
        assert LedgerService(db_session).get_balance(student.id) == 10

    def test_grade_below_threshold_awards_nothing(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        assert service.on_grade_posted(student.id, "g1", 3) is None
        assert LedgerService(db_session).get_balance(student.id) == 0

    def test_regrading_same_assessment_does_not_reaward(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        first = service.on_grade_posted(student.id, "g1", 5)
        second = service.on_grade_posted(student.id, "g1", 5)
        third = service.on_grade_posted(student.id, "g1", 4)

        assert first.id == second.id == third.id
        assert LedgerService(db_session).get_balance(student.id) == 10

    def test_regrading_after_reversal_awards_again(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)
        ledger = LedgerService(db_session)

        first = service.on_grade_posted(student.id, "g1", 5)
        ledger.reverse_transaction(first.id, reason="Regraded")
        second = service.on_grade_posted(student.id, "g1", 4)

        assert second.id != first.id
        assert ledger.get_balance(student.id) == 10

    def test_threshold_is_configurable(self, db_session, settings):
        student = make_student(db_session)
        settings.GRADE_AWARD_THRESHOLD = 5
        service = AwardService(db_session, settings)

        assert service.on_grade_posted(student.id, "g1", 4) is None
        assert service.on_grade_posted(student.id, "g2", 5).amount == 10

    def test_unknown_student_raises(self, db_session, settings):
        with pytest.raises(NotFound):
            AwardService(db_session, settings).on_grade_posted(999, "g1", 5)


class TestHomeworkSubmitted:

    def test_on_time_submission_awards(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)
        deadline = datetime(2026, 3, 1, 18, 0)

        txn = service.on_homework_submitted(
            student.id, "hw1",
            submitted_at=deadline - timedelta(hours=2),
            deadline=deadline,
        )

        assert txn.amount == 5
        assert txn.source_kind == SourceKind.HOMEWORK

    def test_submission_exactly_at_deadline_is_on_time(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)
        deadline = datetime(2026, 3, 1, 18, 0)

        txn = service.on_homework_submitted(
            student.id, "hw1", submitted_at=deadline, deadline=deadline
        )

        assert txn.amount == 5

    def test_late_submission_awards_nothing_by_default(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)
        deadline = datetime(2026, 3, 1, 18, 0)

        txn = service.on_homework_submitted(
            student.id, "hw1",
            submitted_at=deadline + timedelta(minutes=1),
            deadline=deadline,
        )

        assert txn is None
        assert LedgerService(db_session).get_balance(student.id) == 0

    def test_late_submission_reduced_amount(self, db_session, settings):
        student = make_student(db_session)
        settings.HOMEWORK_LATE_POINTS = 2
        service = AwardService(db_session, settings)
        deadline = datetime(2026, 3, 1, 18, 0)

        txn = service.on_homework_submitted(
            student.id, "hw1",
            submitted_at=deadline + timedelta(days=1),
            deadline=deadline,
        )

        assert txn.amount == 2
        assert txn.description == "Homework submitted late"

    def test_timezone_aware_timestamps_are_compared_in_utc(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)
        plus_three = timezone(timedelta(hours=3))

        # 20:00 at UTC+3 is 17:00 UTC, before an 18:00 UTC deadline
        txn = service.on_homework_submitted(
            student.id, "hw1",
            submitted_at=datetime(2026, 3, 1, 20, 0, tzinfo=plus_three),
            deadline=datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc),
        )

        assert txn.amount == 5

    def test_no_deadline_counts_as_on_time(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        assert service.on_homework_submitted(student.id, "hw1").amount == 5

    def test_resubmission_does_not_reaward(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        service.on_homework_submitted(student.id, "hw1")
        service.on_homework_submitted(student.id, "hw1")

        assert LedgerService(db_session).get_balance(student.id) == 5


class TestAttendanceStreak:

    def test_below_first_milestone_awards_nothing(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        assert service.on_attendance_streak(student.id, 4) == []

    def test_reaching_milestone_awards_once(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        first = service.on_attendance_streak(student.id, 5)
        again = service.on_attendance_streak(student.id, 6)

        assert [t.amount for t in first] == [5]
        assert [t.id for t in again] == [t.id for t in first]
        assert first[0].source_event_id == f"{student.id}:5"
        assert LedgerService(db_session).get_balance(student.id) == 5

    def test_jumping_past_milestones_awards_each(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        awarded = service.on_attendance_streak(student.id, 12)

        assert [t.amount for t in awarded] == [5, 15]
        assert LedgerService(db_session).get_balance(student.id) == 20

    def test_later_milestone_adds_only_new_points(self, db_session, settings):
        student = make_student(db_session)
        service = AwardService(db_session, settings)

        service.on_attendance_streak(student.id, 5)
        service.on_attendance_streak(student.id, 10)
        service.on_attendance_streak(student.id, 30)

        assert LedgerService(db_session).get_balance(student.id) == 70
