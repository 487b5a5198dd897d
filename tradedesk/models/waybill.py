"""
Waybill models.

A waybill is the delivery note that physically takes stock out of lots.
Sale waybills advance sale item fulfilled quantities, loan waybills do not.
A conversion waybill books goods already out on loan against a sale; it
moves no stock of its own.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradedesk.database import Base
from tradedesk.db_types import UUIDType


class WaybillType(str, Enum):
    SALE = "sale"
    LOAN = "loan"
    CONVERSION = "conversion"


class WaybillStatus(str, Enum):
    DISPATCHED = "dispatched"
    CANCELLED = "cancelled"


class Waybill(Base):
    """Delivery note header."""
    __tablename__ = "waybills"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    waybill_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="WBYYYY/MM/NNNN"
    )
    waybill_type: Mapped[str] = mapped_column(
        String(10),
        default=WaybillType.SALE.value,
        nullable=False
    )
    sale_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("sales.id"),
        nullable=True,
        index=True
    )
    original_loan_waybill_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("waybills.id"),
        nullable=True,
        comment="Loan waybill a conversion waybill was made from"
    )
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("customers.id"),
        nullable=True
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("stores.id"),
        nullable=False
    )
    waybill_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=WaybillStatus.DISPATCHED.value,
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

    items: Mapped[List["WaybillItem"]] = relationship(
        "WaybillItem",
        back_populates="waybill"
    )

    def __repr__(self) -> str:
        return f"<Waybill {self.waybill_number}>"


class WaybillItem(Base):
    """Product line delivered by a waybill."""
    __tablename__ = "waybill_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    waybill_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("waybills.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sale_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("sale_items.id"),
        nullable=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id"),
        nullable=False
    )
    quantity_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_supplied: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_converted: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Loaned units since converted to a sale"
    )

    waybill: Mapped["Waybill"] = relationship("Waybill", back_populates="items")
    inventories: Mapped[List["WaybillItemInventory"]] = relationship(
        "WaybillItemInventory",
        back_populates="waybill_item"
    )


class WaybillItemInventory(Base):
    """Quantity drawn from one lot for a waybill item."""
    __tablename__ = "waybill_item_inventory"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    waybill_item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("waybill_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    inventory_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("inventory_lots.id"),
        nullable=False
    )
    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_taken: Mapped[int] = mapped_column(Integer, nullable=False)

    waybill_item: Mapped["WaybillItem"] = relationship("WaybillItem", back_populates="inventories")
