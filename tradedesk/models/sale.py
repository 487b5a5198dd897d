"""
Sale models.

A sale item tracks three counters against its ordered quantity:
- fulfilled_quantity: physically delivered through waybills
- backorder_quantity: still waiting for stock to be designated
- has_backorder: always equal to (backorder_quantity > 0)

SaleItemInventory rows record which lots were designated for a sale item,
either at sale time or when a backorder is fulfilled. They are append-only.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy import Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradedesk.database import Base
from tradedesk.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from tradedesk.models.customer import Customer


class SaleStatus(str, Enum):
    """Sale lifecycle status."""
    PENDING = "pending"          # Nothing delivered yet
    PARTIAL = "partial"          # Some items delivered
    COMPLETED = "completed"      # Every item fully delivered
    CANCELLED = "cancelled"


class Sale(Base):
    """Sales invoice header."""
    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True
    )
    sale_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("stores.id"),
        nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(20),
        default=SaleStatus.PENDING.value,
        nullable=False,
        comment="pending, partial, completed, cancelled"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
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

    items: Mapped[List["SaleItem"]] = relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.created_at"
    )
    customer: Mapped[Optional["Customer"]] = relationship("Customer")

    def __repr__(self) -> str:
        return f"<Sale {self.invoice_number}>"


class SaleItem(Base):
    """One product line of a sale."""
    __tablename__ = "sale_items"
    __table_args__ = (
        CheckConstraint("backorder_quantity >= 0", name="chk_sale_item_backorder_non_negative"),
        Index("ix_sale_item_sale", "sale_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    sale_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id"),
        nullable=False,
        index=True
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("stores.id"),
        nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, comment="Ordered quantity")
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))

    fulfilled_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    backorder_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    has_backorder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Snapshot at sale time
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    product_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

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

    sale: Mapped["Sale"] = relationship("Sale", back_populates="items")

    def apply_backorder_change(self, delta: int) -> None:
        """Shift backorder_quantity by delta (floored at zero) and keep the flag in step."""
        self.backorder_quantity = max(0, self.backorder_quantity + delta)
        self.has_backorder = self.backorder_quantity > 0

    @property
    def outstanding_quantity(self) -> int:
        return max(0, self.quantity - self.fulfilled_quantity)

    def __repr__(self) -> str:
        return f"<SaleItem {self.product_code} x{self.quantity}>"


class SaleItemInventory(Base):
    """
    Lot designated for a sale item. One row per designation.

    The undelivered part (quantity_to_take - quantity_delivered) is held
    back from other sales until a waybill draws it.
    """
    __tablename__ = "sale_item_inventory"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    sale_item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("sale_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    inventory_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("inventory_lots.id"),
        nullable=False,
        index=True
    )
    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_to_take: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_delivered: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Part of the designation already drawn by waybills"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    @property
    def quantity_outstanding(self) -> int:
        return max(0, self.quantity_to_take - self.quantity_delivered)
