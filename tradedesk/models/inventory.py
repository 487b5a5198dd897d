"""Inventory models for lot based stock management."""
from enum import Enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Integer, DateTime, Date
from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import relationship
import uuid

from tradedesk.database import Base
from tradedesk.db_types import UUIDType, MoneyType


class InventoryTransactionType(str, Enum):
    """Reason a transaction log row was written."""
    PURCHASE = "purchase"  # Stock received from a purchase
    SALE = "sale"  # Drawn by a sale waybill
    LOAN = "loan"  # Drawn by a loan waybill
    SALE_REVERSAL = "sale_reversal"
    WAYBILL_EDIT = "waybill_edit"
    WAYBILL_EDIT_REVERSAL = "waybill_edit_reversal"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"  # Manual stock receipt or correction
    BACKORDER_FULFILLMENT = "backorder_fulfillment"  # Provisional allocation, quantity unchanged
    WAYBILL_DELETION_RESTORE = "waybill_deletion_restore"  # Cancelled waybill returned its stock


class InventoryLot(Base):
    """
    Physical stock of one product at one store under one lot number.

    quantity is only changed by stock receipt, purchase receipt, waybill
    dispatch and waybill cancellation. Each change is paired with an
    InventoryTransaction row.
    """

    __tablename__ = "inventory_lots"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="chk_inventory_lot_quantity_non_negative"),
        Index("ix_inventory_lot_product_store", "product_id", "store_id", "is_active"),
    )

    id = Column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)

    product_id = Column(UUIDType(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)
    store_id = Column(UUIDType(as_uuid=True), ForeignKey("stores.id"), nullable=False, index=True)

    lot_number = Column(String(100), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)

    cost_price = Column(MoneyType, default=0)
    selling_price = Column(MoneyType, default=0)

    manufacture_date = Column(Date)
    expiry_date = Column(Date)
    received_date = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    product = relationship("Product")
    store = relationship("Store")

    def __repr__(self):
        return f"<InventoryLot {self.lot_number} qty={self.quantity}>"


class InventoryTransaction(Base):
    """Immutable stock ledger row. Never updated or deleted."""

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_txn_product_store", "product_id", "store_id"),
        Index("ix_inventory_txn_reference", "reference_id"),
    )

    id = Column(UUIDType(as_uuid=True), primary_key=True, default=uuid.uuid4)

    inventory_lot_id = Column(UUIDType(as_uuid=True), ForeignKey("inventory_lots.id"), index=True)
    product_id = Column(UUIDType(as_uuid=True), ForeignKey("products.id"), nullable=False)
    store_id = Column(UUIDType(as_uuid=True), ForeignKey("stores.id"), nullable=False)
    user_id = Column(UUIDType(as_uuid=True))  # Actor

    transaction_type = Column(
        String(40), nullable=False, index=True,
        comment="purchase, sale, loan, sale_reversal, waybill_edit, waybill_edit_reversal, transfer, adjustment, backorder_fulfillment, waybill_deletion_restore"
    )
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    transaction_date = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    # Causing entity (backorder, waybill, purchase, ...)
    reference_id = Column(UUIDType(as_uuid=True))
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    inventory_lot = relationship("InventoryLot")

    def __repr__(self):
        return f"<InventoryTransaction {self.transaction_type} {self.quantity_before}->{self.quantity_after}>"
