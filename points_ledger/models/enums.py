"""
Shared enumerations for database models.

Mapped to database enums so that an unknown source kind or
purchase status is rejected by the database, not just by
Python validation.
"""

import enum


class SourceKind(str, enum.Enum):
    """What produced a points transaction."""
    GRADE = "grade"
    HOMEWORK = "homework"
    ATTENDANCE = "attendance"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    REDEMPTION = "redemption"


class ShopCategory(str, enum.Enum):
    CLOTHING = "clothing"
    ACCESSORIES = "accessories"
    STATIONERY = "stationery"
    ELECTRONICS = "electronics"


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    FAILED = "failed"


class RedemptionState(str, enum.Enum):
    """Steps of a single purchase attempt. Not persisted."""
    INITIATED = "initiated"
    VALIDATING_FUNDS = "validating_funds"
    VALIDATING_STOCK = "validating_stock"
    COMMITTING = "committing"
    COMPLETED = "completed"
    REJECTED = "rejected"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Store enum values, not member names, in the database."""
    return [member.value for member in enum_cls]
