"""
Audit log model.

Records significant events: completed and rejected purchases,
reversed transactions. Rejections leave no trace in the ledger,
so this is the only place they are recorded.
"""

from datetime import datetime

from sqlalchemy import Index, Integer, String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from points_ledger.models.base import Base


class AuditLog(Base):
    """
    Immutable record of a system event.

    Audit rows are append-only, never updated or deleted.
    """

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_student_event", "student_id", "event_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    # Not a foreign key: rejections may name a student that does not exist
    student_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_type} student={self.student_id}>"
