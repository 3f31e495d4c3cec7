"""
Redemption service: spending points in the shop.

A purchase attempt walks a fixed state machine:

    INITIATED -> VALIDATING_FUNDS -> VALIDATING_STOCK
              -> COMMITTING -> COMPLETED

and drops to REJECTED from any validation step. The debit,
the stock decrement and the Purchase row are written in one
unit of work holding both the student's and the item's lock,
so either all three are committed or none is.

A rejection is recorded in the audit log after the rollback;
balance, stock and history stay exactly as they were.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from points_ledger.errors import (
    InsufficientBalance,
    InvalidStatusTransition,
    NotFound,
    OutOfStock,
)
from points_ledger.models.enums import PurchaseStatus, RedemptionState, SourceKind
from points_ledger.models.purchase import Purchase
from points_ledger.schemas.ledger import TransactionInput
from points_ledger.services.audit import record_event
from points_ledger.services.catalog_service import CatalogService
from points_ledger.services.ledger_service import LedgerService
from points_ledger.services.locks import item_key, student_key, unit_of_work

logger = logging.getLogger(__name__)


ATTEMPT_TRANSITIONS: dict[RedemptionState, set[RedemptionState]] = {
    RedemptionState.INITIATED: {
        RedemptionState.VALIDATING_FUNDS,
        RedemptionState.REJECTED,
    },
    RedemptionState.VALIDATING_FUNDS: {
        RedemptionState.VALIDATING_STOCK,
        RedemptionState.REJECTED,
    },
    RedemptionState.VALIDATING_STOCK: {
        RedemptionState.COMMITTING,
        RedemptionState.REJECTED,
    },
    RedemptionState.COMMITTING: {RedemptionState.COMPLETED},
    RedemptionState.COMPLETED: set(),
    RedemptionState.REJECTED: set(),
}


class PurchaseAttempt:
    """In-memory progress of one purchase call."""

    def __init__(self, student_id: int, item_id: int):
        self.student_id = student_id
        self.item_id = item_id
        self.state = RedemptionState.INITIATED
        self.reason: str | None = None

    def advance(self, new_state: RedemptionState) -> None:
        if new_state not in ATTEMPT_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Purchase attempt cannot move from {self.state.value} "
                f"to {new_state.value}"
            )
        self.state = new_state

    def reject(self, reason: str) -> None:
        self.advance(RedemptionState.REJECTED)
        self.reason = reason


class RedemptionService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.catalog_service = CatalogService(db)

    def purchase(self, student_id: int, item_id: int) -> Purchase:
        """
        Buy one unit of an item with the student's points.

        Raises NotFound, InsufficientBalance or OutOfStock when the
        purchase is denied, and Busy when the locks could not be
        taken in time. Nothing is written in any of those cases.
        """
        attempt = PurchaseAttempt(student_id, item_id)
        keys = [student_key(student_id), item_key(item_id)]

        try:
            with unit_of_work(self.db, keys):
                purchase = self._commit_purchase(attempt)
        except (NotFound, InsufficientBalance, OutOfStock) as exc:
            attempt.reject(exc.detail)
            self._record_rejection(attempt, type(exc).__name__)
            raise

        attempt.advance(RedemptionState.COMPLETED)
        logger.info(
            "student %s bought item %s for %d points (purchase %s)",
            student_id, item_id, purchase.cost, purchase.id,
        )
        return purchase

    def _commit_purchase(self, attempt: PurchaseAttempt) -> Purchase:
        """Validate and write the purchase. Runs inside the unit of work."""
        self.ledger_service.get_student(attempt.student_id)
        item = self.catalog_service.get_item_for_update(attempt.item_id)

        attempt.advance(RedemptionState.VALIDATING_FUNDS)
        balance = self.ledger_service.get_balance(attempt.student_id)
        if balance < item.cost:
            raise InsufficientBalance(available=balance, requested=item.cost)

        attempt.advance(RedemptionState.VALIDATING_STOCK)
        if not item.in_stock:
            raise OutOfStock(item.id)

        attempt.advance(RedemptionState.COMMITTING)
        reservation = self.catalog_service.reserve_stock(item.id)
        try:
            purchase_ref = uuid.uuid4()
            txn = self.ledger_service.append_transaction(TransactionInput(
                student_id=attempt.student_id,
                source_kind=SourceKind.REDEMPTION,
                source_event_id=str(purchase_ref),
                amount=-item.cost,
                description=f"Purchase: {item.name}"[:255],
            ))
            purchase = Purchase(
                external_id=purchase_ref,
                student_id=attempt.student_id,
                item_id=item.id,
                transaction_id=txn.id,
                cost=item.cost,
                status=PurchaseStatus.COMPLETED,
            )
            self.db.add(purchase)
            self.db.flush()
        except Exception:
            # unit_of_work rolls back, which restores the reserved unit
            self.catalog_service.release_reservation(
                reservation, restore_stock=False
            )
            raise
        self.catalog_service.commit_reservation(reservation)

        record_event(
            self.db,
            "purchase_completed",
            purchase_id=purchase.id,
            student_id=attempt.student_id,
            item_id=item.id,
            cost=purchase.cost,
        )
        return purchase

    def _record_rejection(self, attempt: PurchaseAttempt, error: str) -> None:
        """Write the denial to the audit log in its own commit."""
        logger.warning(
            "purchase of item %s by student %s rejected: %s",
            attempt.item_id, attempt.student_id, attempt.reason,
        )
        record_event(
            self.db,
            "purchase_rejected",
            student_id=attempt.student_id,
            item_id=attempt.item_id,
            error=error,
            reason=attempt.reason,
        )
        self.db.commit()

    def get_purchase(self, purchase_id: int) -> Purchase:
        purchase = self.db.get(Purchase, purchase_id)
        if not purchase:
            raise NotFound(f"Purchase {purchase_id} not found")
        return purchase

    def get_purchases(self, student_id: int) -> list[Purchase]:
        """All purchases of a student, newest first."""
        self.ledger_service.get_student(student_id)
        purchases = self.db.execute(
            select(Purchase)
            .where(Purchase.student_id == student_id)
            .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        ).scalars().all()
        return list(purchases)

    def advance_status(
        self, purchase_id: int, new_status: PurchaseStatus
    ) -> Purchase:
        """
        Move a purchase along its fulfilment lifecycle.

        Enforces the state machine in VALID_TRANSITIONS. The
        caller commits.
        """
        purchase = self.get_purchase(purchase_id)
        if not purchase.can_transition_to(new_status):
            raise InvalidStatusTransition(
                f"Cannot transition from {purchase.status.value} "
                f"to {new_status.value}"
            )

        purchase.status = new_status
        if new_status == PurchaseStatus.DELIVERED:
            purchase.delivered_at = datetime.utcnow()

        self.db.flush()
        return purchase
