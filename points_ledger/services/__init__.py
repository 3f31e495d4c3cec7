"""Business logic services."""

from points_ledger.services.ledger_service import LedgerService
from points_ledger.services.student_service import StudentService
from points_ledger.services.award_service import AwardService
from points_ledger.services.catalog_service import CatalogService
from points_ledger.services.redemption_service import RedemptionService

__all__ = [
    "LedgerService",
    "StudentService",
    "AwardService",
    "CatalogService",
    "RedemptionService",
]
