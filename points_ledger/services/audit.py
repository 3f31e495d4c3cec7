"""Append-only audit trail helper."""

import json

from sqlalchemy import select
from sqlalchemy.orm import Session

from points_ledger.models.audit_log import AuditLog


def record_event(
    db: Session, event_type: str, student_id: int | None = None, **details
) -> AuditLog:
    """Add an audit row to the session. The caller commits."""
    entry = AuditLog(
        event_type=event_type,
        student_id=student_id,
        details=json.dumps(details, default=str, sort_keys=True),
    )
    db.add(entry)
    return entry


def events_for_student(
    db: Session, student_id: int, event_type: str | None = None
) -> list[AuditLog]:
    """A student's audit rows, oldest first."""
    stmt = (
        select(AuditLog)
        .where(AuditLog.student_id == student_id)
        .order_by(AuditLog.id)
    )
    if event_type is not None:
        stmt = stmt.where(AuditLog.event_type == event_type)
    return list(db.execute(stmt).scalars().all())
