"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from points_ledger.models.base import Base
from points_ledger.models.enums import (
    SourceKind,
    ShopCategory,
    PurchaseStatus,
    RedemptionState,
)
from points_ledger.models.audit_log import AuditLog
from points_ledger.models.student import Student
from points_ledger.models.points_transaction import PointsTransaction
from points_ledger.models.points_account import StudentPointsAccount
from points_ledger.models.shop_item import ShopItem
from points_ledger.models.purchase import Purchase

__all__ = [
    "Base",
    "SourceKind",
    "ShopCategory",
    "PurchaseStatus",
    "RedemptionState",
    "AuditLog",
    "Student",
    "PointsTransaction",
    "StudentPointsAccount",
    "ShopItem",
    "Purchase",
]
