"""
Shop item model.

stock is None for unlimited items. Zero is a distinct state:
the item exists but is sold out.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Integer, String, Text,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from points_ledger.models.base import Base
from points_ledger.models.enums import ShopCategory, enum_values


class ShopItem(Base):
    __tablename__ = "shop_items"
    __table_args__ = (
        CheckConstraint("cost > 0", name="ck_shop_items_cost_positive"),
        CheckConstraint(
            "stock IS NULL OR stock >= 0", name="ck_shop_items_stock_non_negative"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[ShopCategory] = mapped_column(
        SAEnum(
            ShopCategory,
            name="shop_category_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )
    stock: Mapped[int | None] = mapped_column(Integer, nullable=True)
    popularity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    @property
    def is_unlimited(self) -> bool:
        return self.stock is None

    @property
    def in_stock(self) -> bool:
        return self.stock is None or self.stock > 0

    def __repr__(self) -> str:
        stock = "unlimited" if self.stock is None else self.stock
        return f"<ShopItem {self.name} cost={self.cost} stock={stock}>"
