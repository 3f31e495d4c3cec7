"""
Materialized points balance.

StudentPointsAccount is a cache of the student's ledger, not a
source of truth: total_points must always equal the sum of the
student's transactions. LedgerService updates it in the same
flush as every transaction insert.
"""

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from points_ledger.models.base import Base


class StudentPointsAccount(Base):
    __tablename__ = "student_points_accounts"
    __table_args__ = (
        CheckConstraint("total_points >= 0", name="ck_points_accounts_non_negative"),
    )

    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), primary_key=True
    )
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_today_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    student: Mapped["Student"] = relationship(back_populates="points_account")

    def earned_on(self, day: date) -> int:
        """Points earned on `day`; the counter belongs to a single date."""
        if self.earned_today_date != day:
            return 0
        return self.earned_today

    def apply(self, amount: int, day: date) -> None:
        """Fold one transaction amount into the cached totals."""
        self.total_points += amount
        if amount > 0:
            if self.earned_today_date != day:
                self.earned_today_date = day
                self.earned_today = 0
            self.earned_today += amount

    def __repr__(self) -> str:
        return f"<StudentPointsAccount {self.student_id} {self.total_points}>"
