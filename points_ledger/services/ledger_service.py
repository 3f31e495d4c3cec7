"""
Ledger service: the store of every points movement.

This service enforces the fundamental rules:
1. Transactions are immutable (append-only)
2. A balance never goes negative
3. A source event is applied at most once per student
4. The materialized balance moves in the same flush as the
   transaction that changes it

No other service writes transactions directly. Awards and
redemptions go through append_transaction().
"""

import logging
from datetime import date, datetime

from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session, aliased

from points_ledger.errors import (
    DuplicateSourceEvent,
    InsufficientBalance,
    NotFound,
    PointsError,
)
from points_ledger.models.enums import SourceKind
from points_ledger.models.points_account import StudentPointsAccount
from points_ledger.models.points_transaction import PointsTransaction
from points_ledger.models.student import Student
from points_ledger.schemas.ledger import TransactionInput
from points_ledger.services.audit import record_event
from points_ledger.services.locks import student_key, unit_of_work

logger = logging.getLogger(__name__)

REVERSAL_KEY_PREFIX = "reversal:"


def today() -> date:
    return datetime.utcnow().date()


class LedgerService:
    """
    All ledger operations pass through this service.

    append_transaction() only flushes: the caller owns the
    transaction boundary and must hold the student's lock, which
    award and redemption flows do through unit_of_work().
    record() and reverse_transaction() are self-contained units
    of work for callers that post a single movement.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_student(self, student_id: int) -> Student:
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFound(f"Student {student_id} not found")
        return student

    def _get_account_for_update(self, student_id: int) -> StudentPointsAccount:
        """
        Load the materialized account row, creating it on first use.

        FOR UPDATE locks the row on PostgreSQL; populate_existing
        discards any stale copy in the session's identity map.
        """
        account = self.db.execute(
            select(StudentPointsAccount)
            .where(StudentPointsAccount.student_id == student_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if account is None:
            account = StudentPointsAccount(
                student_id=student_id, total_points=0, earned_today=0
            )
            self.db.add(account)
            self.db.flush()
        return account

    def find_active(
        self, student_id: int, source_kind: SourceKind, source_event_id: str
    ) -> PointsTransaction | None:
        """Return the unreversed transaction for a source event, if any."""
        reversal = aliased(PointsTransaction)
        return self.db.execute(
            select(PointsTransaction)
            .where(
                PointsTransaction.student_id == student_id,
                PointsTransaction.source_kind == source_kind,
                PointsTransaction.source_event_id == source_event_id,
                ~exists().where(
                    reversal.reverses_transaction_id == PointsTransaction.id
                ),
            )
            .order_by(PointsTransaction.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _check_duplicate(self, tx: TransactionInput) -> None:
        existing = self.find_active(
            tx.student_id, tx.source_kind, tx.source_event_id
        )
        if existing:
            raise DuplicateSourceEvent(existing)

    def append_transaction(
        self,
        tx: TransactionInput,
        reverses: PointsTransaction | None = None,
    ) -> PointsTransaction:
        """
        Append one transaction and fold it into the balance.

        A repeated source event returns the transaction recorded
        the first time instead of failing, so at-least-once event
        delivery is safe. A debit larger than the balance raises
        InsufficientBalance and writes nothing.
        """
        self.get_student(tx.student_id)
        account = self._get_account_for_update(tx.student_id)

        try:
            self._check_duplicate(tx)
        except DuplicateSourceEvent as dup:
            logger.info("%s; returning transaction %s", dup.detail, dup.existing.id)
            return dup.existing

        if tx.amount < 0 and account.total_points + tx.amount < 0:
            raise InsufficientBalance(
                available=account.total_points, requested=-tx.amount
            )

        transaction = PointsTransaction(
            student_id=tx.student_id,
            source_kind=tx.source_kind,
            source_event_id=tx.source_event_id,
            amount=tx.amount,
            description=tx.description,
            reverses_transaction_id=reverses.id if reverses else None,
        )
        self.db.add(transaction)
        account.apply(tx.amount, today())

        self.db.flush()
        return transaction

    def record(self, tx: TransactionInput) -> PointsTransaction:
        """Append a single transaction as its own committed unit of work."""
        with unit_of_work(self.db, [student_key(tx.student_id)]):
            transaction = self.append_transaction(tx)
        return transaction

    def reverse_transaction(
        self, transaction_id: int, reason: str = "Reversal"
    ) -> PointsTransaction:
        """
        Undo a transaction by appending its negation.

        The original row is not touched; the reversal points at it.
        Once reversed, the original's source event no longer counts
        as applied and may be awarded again. Reversing twice returns
        the first reversal.
        """
        original = self.get_transaction(transaction_id)
        if original.source_kind == SourceKind.REDEMPTION:
            raise PointsError("Redemption debits cannot be reversed")
        if original.reverses_transaction_id is not None:
            raise PointsError("A reversal cannot itself be reversed")

        reversal_key = f"{REVERSAL_KEY_PREFIX}{original.external_id}"
        with unit_of_work(self.db, [student_key(original.student_id)]):
            existing = self.find_active(
                original.student_id, SourceKind.MANUAL_ADJUSTMENT, reversal_key
            )
            if existing:
                return existing

            reversal = self.append_transaction(
                TransactionInput(
                    student_id=original.student_id,
                    source_kind=SourceKind.MANUAL_ADJUSTMENT,
                    source_event_id=reversal_key,
                    amount=-original.amount,
                    description=f"{reason}: {original.description}"[:255],
                ),
                reverses=original,
            )
            record_event(
                self.db,
                "transaction_reversed",
                transaction_id=original.id,
                reversal_id=reversal.id,
                student_id=original.student_id,
                amount=reversal.amount,
            )
        logger.info(
            "reversed transaction %s for student %s (%+d)",
            original.id, original.student_id, reversal.amount,
        )
        return reversal

    def _load_account(self, student_id: int) -> StudentPointsAccount | None:
        return self.db.execute(
            select(StudentPointsAccount)
            .where(StudentPointsAccount.student_id == student_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_balance(self, student_id: int) -> int:
        """Current balance, read from the materialized account."""
        self.get_student(student_id)
        account = self._load_account(student_id)
        return account.total_points if account else 0

    def get_account(self, student_id: int) -> StudentPointsAccount:
        """
        Materialized account for the dashboard card.

        Students who never earned anything get an unsaved zero
        account rather than NotFound.
        """
        self.get_student(student_id)
        account = self._load_account(student_id)
        if account is None:
            return StudentPointsAccount(
                student_id=student_id, total_points=0, earned_today=0
            )
        return account

    def get_history(
        self, student_id: int, limit: int = 50, offset: int = 0
    ) -> list[PointsTransaction]:
        """Return one page of a student's transactions, newest first."""
        self.get_student(student_id)
        transactions = self.db.execute(
            select(PointsTransaction)
            .where(PointsTransaction.student_id == student_id)
            .order_by(
                PointsTransaction.created_at.desc(),
                PointsTransaction.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(transactions)

    def get_transaction(self, transaction_id: int) -> PointsTransaction:
        transaction = self.db.get(PointsTransaction, transaction_id)
        if not transaction:
            raise NotFound(f"Transaction {transaction_id} not found")
        return transaction

    def sum_history(self, student_id: int) -> int:
        """Fold over the full history, ignoring the materialized total."""
        total = self.db.execute(
            select(func.coalesce(func.sum(PointsTransaction.amount), 0)).where(
                PointsTransaction.student_id == student_id
            )
        ).scalar()
        return int(total)

    def check_integrity(self, student_id: int) -> dict:
        """
        Compare the materialized balance with the ledger.

        A mismatch means something wrote to one without the other.
        """
        materialized = self.get_balance(student_id)
        computed = self.sum_history(student_id)
        return {
            "student_id": student_id,
            "materialized": materialized,
            "computed": computed,
            "is_consistent": materialized == computed,
        }
