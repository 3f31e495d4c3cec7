"""
Points transaction model.

One row per earning or spending event. Rows are immutable:
a mistaken award is undone by appending a reversal that points
back at it, never by editing or deleting the original.

Idempotency is keyed by (student_id, source_kind, source_event_id).
The key is not a unique constraint because a reversed award may be
re-issued under the same key; LedgerService enforces "at most one
active transaction per key" under the student lock.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, Integer, String,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from points_ledger.models.base import Base
from points_ledger.models.enums import SourceKind, enum_values


class PointsTransaction(Base):
    __tablename__ = "points_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_points_transactions_amount_nonzero"),
        Index(
            "ix_points_transactions_source",
            "student_id", "source_kind", "source_event_id",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    source_kind: Mapped[SourceKind] = mapped_column(
        SAEnum(
            SourceKind,
            name="source_kind_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    source_event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    reverses_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("points_transactions.id"), nullable=True, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    student: Mapped["Student"] = relationship()
    reverses: Mapped["PointsTransaction | None"] = relationship(
        remote_side=[id]
    )

    @property
    def is_earning(self) -> bool:
        return self.amount > 0

    def __repr__(self) -> str:
        return (
            f"<PointsTransaction {self.source_kind.value}:"
            f"{self.source_event_id} {self.amount:+d}>"
        )
