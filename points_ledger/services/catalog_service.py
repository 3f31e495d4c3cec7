"""
Catalog service: shop items and their stock.

Reads are plain queries. Stock only changes through a
reservation taken inside a unit of work that holds the item's
lock: reserve_stock() takes one unit, and the reservation is
then either committed (the unit is sold) or released (the unit
goes back on the shelf).
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from points_ledger.errors import NotFound, OutOfStock, PointsError
from points_ledger.models.enums import ShopCategory
from points_ledger.models.shop_item import ShopItem
from points_ledger.schemas.shop import ShopItemCreate
from points_ledger.services.locks import item_key, unit_of_work

logger = logging.getLogger(__name__)


# The college shop as it first opened: merch, stationery and a
# couple of limited electronics.
DEMO_CATALOG = [
    ShopItemCreate(
        name="College hoodie",
        description="Warm hoodie with the college logo",
        cost=150,
        category=ShopCategory.CLOTHING,
        stock=25,
        popularity=92,
    ),
    ShopItemCreate(
        name="Logo T-shirt",
        description="Cotton T-shirt with the college logo",
        cost=80,
        category=ShopCategory.CLOTHING,
        stock=40,
        popularity=78,
    ),
    ShopItemCreate(
        name="Branded backpack",
        description="Backpack with a laptop compartment",
        cost=120,
        category=ShopCategory.ACCESSORIES,
        stock=15,
        popularity=85,
    ),
    ShopItemCreate(
        name="Thermo mug",
        description="Keeps tea hot through a double lecture",
        cost=60,
        category=ShopCategory.ACCESSORIES,
        stock=None,
        popularity=64,
    ),
    ShopItemCreate(
        name="Notebook set",
        description="Three ruled notebooks",
        cost=25,
        category=ShopCategory.STATIONERY,
        stock=None,
        popularity=70,
    ),
    ShopItemCreate(
        name="Pen set",
        description="Gel pens in four colours",
        cost=15,
        category=ShopCategory.STATIONERY,
        stock=None,
        popularity=55,
    ),
    ShopItemCreate(
        name="USB flash drive 64 GB",
        description="Flash drive with the college logo",
        cost=90,
        category=ShopCategory.ELECTRONICS,
        stock=20,
        popularity=73,
    ),
    ShopItemCreate(
        name="Wireless earbuds",
        description="Bluetooth earbuds, limited edition",
        cost=300,
        category=ShopCategory.ELECTRONICS,
        stock=5,
        popularity=96,
    ),
]


@dataclass(frozen=True)
class ReservationToken:
    """One unit of an item held for a purchase in progress."""
    item_id: int
    decremented: bool
    token: uuid.UUID = field(default_factory=uuid.uuid4)


class CatalogService:

    def __init__(self, db: Session):
        self.db = db
        self._open_reservations: dict[uuid.UUID, ReservationToken] = {}

    def list_items(
        self,
        category: ShopCategory | None = None,
        include_inactive: bool = False,
    ) -> list[ShopItem]:
        """List items, most popular first. No side effects."""
        stmt = select(ShopItem).order_by(
            ShopItem.popularity.desc(), ShopItem.name
        )
        if category is not None:
            stmt = stmt.where(ShopItem.category == category)
        if not include_inactive:
            stmt = stmt.where(ShopItem.is_active.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def get_item(self, item_id: int) -> ShopItem:
        item = self.db.get(ShopItem, item_id)
        if not item:
            raise NotFound(f"Item {item_id} not found")
        return item

    def get_item_for_update(self, item_id: int) -> ShopItem:
        """Load an item with a row lock, bypassing the identity map."""
        item = self.db.execute(
            select(ShopItem)
            .where(ShopItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not item or not item.is_active:
            raise NotFound(f"Item {item_id} not found")
        return item

    def create_item(self, request: ShopItemCreate) -> ShopItem:
        """Add an item to the catalog. The caller commits."""
        item = ShopItem(
            name=request.name,
            description=request.description,
            cost=request.cost,
            category=request.category,
            stock=request.stock,
            popularity=request.popularity,
        )
        self.db.add(item)
        self.db.flush()
        return item

    def restock(self, item_id: int, quantity: int) -> ShopItem:
        """Add units to a limited item, under the item's lock."""
        if quantity <= 0:
            raise PointsError("Restock quantity must be positive")

        with unit_of_work(self.db, [item_key(item_id)]):
            item = self.get_item_for_update(item_id)
            if item.is_unlimited:
                raise PointsError(f"Item {item_id} has unlimited stock")
            item.stock += quantity
            self.db.flush()
        logger.info("restocked item %s by %d", item_id, quantity)
        return item

    def seed_demo_catalog(self) -> list[ShopItem]:
        """Insert the demo catalog into an empty shop. The caller commits."""
        count = self.db.execute(select(func.count(ShopItem.id))).scalar()
        if count:
            return []
        items = [self.create_item(request) for request in DEMO_CATALOG]
        logger.info("seeded %d demo catalog items", len(items))
        return items

    # --- Reservations ---
    # Callers must hold item_key(item_id) through unit_of_work().

    def reserve_stock(self, item_id: int) -> ReservationToken:
        """
        Take one unit of an item.

        Unlimited items are not decremented but still yield a token,
        so callers handle both kinds the same way.
        """
        item = self.get_item_for_update(item_id)
        if not item.in_stock:
            raise OutOfStock(item_id)

        if item.is_unlimited:
            reservation = ReservationToken(item_id=item_id, decremented=False)
        else:
            item.stock -= 1
            reservation = ReservationToken(item_id=item_id, decremented=True)

        self.db.flush()
        self._open_reservations[reservation.token] = reservation
        return reservation

    def commit_reservation(self, reservation: ReservationToken) -> None:
        """Mark the reserved unit as sold."""
        if self._open_reservations.pop(reservation.token, None) is None:
            raise PointsError("Reservation is not open")

    def release_reservation(
        self, reservation: ReservationToken, restore_stock: bool = True
    ) -> None:
        """
        Close a reservation without selling the unit.

        With restore_stock the unit is put back on the shelf. Pass
        restore_stock=False when the surrounding unit of work is
        rolling back, since the rollback already restores it.
        """
        if self._open_reservations.pop(reservation.token, None) is None:
            raise PointsError("Reservation is not open")
        if restore_stock and reservation.decremented:
            item = self.get_item_for_update(reservation.item_id)
            item.stock += 1
            self.db.flush()
