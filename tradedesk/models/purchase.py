"""Purchase and purchase order models."""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, Date, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradedesk.database import Base
from tradedesk.db_types import UUIDType, MoneyType


class PurchaseStatus(str, Enum):
    """Purchase / purchase order status."""
    DRAFT = "draft"
    PENDING = "pending"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class Purchase(Base):
    """Goods bought from a vendor. Received purchases feed inventory lots."""
    __tablename__ = "purchases"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    purchase_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="P-YYYY/MM/NNNN"
    )
    vendor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    vendor_invoice_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("stores.id"),
        nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(20),
        default=PurchaseStatus.PENDING.value,
        nullable=False
    )
    is_received: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
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

    items: Mapped[List["PurchaseItem"]] = relationship(
        "PurchaseItem",
        back_populates="purchase"
    )

    def __repr__(self) -> str:
        return f"<Purchase {self.purchase_number}>"


class PurchaseItem(Base):
    """Purchased product line with the lot it is received into."""
    __tablename__ = "purchase_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    purchase_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("purchases.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id"),
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    purchase: Mapped["Purchase"] = relationship("Purchase", back_populates="items")


class PurchaseOrder(Base):
    """Order placed with a vendor ahead of a purchase."""
    __tablename__ = "purchase_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    purchase_order_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="PO-YYYY/MM/NNNN"
    )
    vendor_name: Mapped[str] = mapped_column(String(200), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    store_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("stores.id"),
        nullable=True
    )
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(20),
        default=PurchaseStatus.DRAFT.value,
        nullable=False
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

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.purchase_order_number}>"
