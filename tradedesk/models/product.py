"""Product catalog model."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from tradedesk.database import Base
from tradedesk.db_types import UUIDType, MoneyType


class Product(Base):
    """
    Catalog entry.

    There is no quantity column: on-hand stock is the sum of
    the product's active inventory lots, see InventoryService.get_product_stock.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    product_code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="SKU code"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cost_price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    selling_price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))

    # Reorder thresholds
    alert_quantity: Mapped[int] = mapped_column(
        Integer,
        default=1,
        comment="Low stock alert at or below this quantity"
    )
    max_alert_quantity: Mapped[int] = mapped_column(
        Integer,
        default=5,
        comment="Over stock alert at or above this quantity"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Product {self.product_code}>"
