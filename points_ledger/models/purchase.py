"""
Purchase model.

Produced only by a committed redemption. cost is a snapshot
taken at purchase time and does not follow later price changes.

The purchase has a state machine for fulfilment. Invalid
transitions are rejected.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Enum as SAEnum, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from points_ledger.models.base import Base
from points_ledger.models.enums import PurchaseStatus, enum_values


VALID_TRANSITIONS: dict[PurchaseStatus, set[PurchaseStatus]] = {
    PurchaseStatus.PENDING: {PurchaseStatus.PROCESSING, PurchaseStatus.FAILED},
    PurchaseStatus.PROCESSING: {PurchaseStatus.COMPLETED, PurchaseStatus.FAILED},
    PurchaseStatus.COMPLETED: {PurchaseStatus.DELIVERED},
    PurchaseStatus.DELIVERED: set(),
    PurchaseStatus.FAILED: set(),
}


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(
        ForeignKey("shop_items.id"), nullable=False, index=True
    )
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("points_transactions.id"), unique=True, nullable=False
    )
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PurchaseStatus] = mapped_column(
        SAEnum(
            PurchaseStatus,
            name="purchase_status_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=PurchaseStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )

    item: Mapped["ShopItem"] = relationship()
    transaction: Mapped["PointsTransaction"] = relationship()

    def can_transition_to(self, new_status: PurchaseStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return f"<Purchase {self.external_id} cost={self.cost} ({self.status.value})>"
