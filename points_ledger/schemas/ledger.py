"""
Pydantic schemas for ledger operations.

These define the API contract. They are separate from the
database models because the API shape and the storage shape
are often different.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from points_ledger.models.enums import SourceKind


# --- Request Schemas ---

class TransactionInput(BaseModel):
    """
    A single earning (positive) or spending (negative) movement.

    source_event_id is the caller's idempotency key: the same
    (student_id, source_kind, source_event_id) is applied once.
    """
    student_id: int
    source_kind: SourceKind
    source_event_id: str = Field(min_length=1, max_length=100)
    amount: int
    description: str = Field(min_length=1, max_length=255)

    @field_validator("amount")
    @classmethod
    def amount_must_be_nonzero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount must not be zero")
        return v


class ManualAdjustmentRequest(BaseModel):
    """Administrative correction posted against one student."""
    amount: int
    description: str = Field(min_length=1, max_length=255)
    idempotency_key: str = Field(min_length=1, max_length=100)

    @field_validator("amount")
    @classmethod
    def amount_must_be_nonzero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount must not be zero")
        return v


class ReversalRequest(BaseModel):
    reason: str = Field(default="Reversal", min_length=1, max_length=200)


# --- Response Schemas ---

class TransactionResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    student_id: int
    source_kind: SourceKind
    source_event_id: str
    amount: int
    description: str
    reverses_transaction_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class HistoryResponse(BaseModel):
    """One page of a student's history, newest first."""
    student_id: int
    limit: int
    offset: int
    transactions: list[TransactionResponse]


class PointsSummaryResponse(BaseModel):
    """Balance card shown on the student dashboard."""
    student_id: int
    total_points: int
    earned_today: int


class AuditEventResponse(BaseModel):
    id: int
    event_type: str
    student_id: int | None
    details: str
    created_at: datetime

    model_config = {"from_attributes": True}
