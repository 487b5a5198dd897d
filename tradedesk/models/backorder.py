"""
Backorder model.

A backorder captures the part of a sale item that could not be covered by
on-hand lots when the sale was made. It stays active while pending_quantity
is above zero and is never physically deleted.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer
from sqlalchemy import UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tradedesk.database import Base
from tradedesk.db_types import UUIDType


class Backorder(Base):
    """Pending quantity of one sale item at one store."""
    __tablename__ = "backorders"
    __table_args__ = (
        UniqueConstraint(
            "product_id", "store_id", "sale_item_id",
            name="uq_backorder_product_store_sale_item"
        ),
        CheckConstraint("pending_quantity >= 0", name="chk_backorder_pending_non_negative"),
        Index("ix_backorder_active_created", "is_active", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
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
        nullable=False,
        index=True
    )
    sale_item_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("sale_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Quantity
    pending_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    original_pending_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Shortfall recorded when the backorder was opened"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def fulfilled_quantity(self) -> int:
        return self.original_pending_quantity - self.pending_quantity

    def reduce_pending(self, quantity: int) -> None:
        """Take quantity off the pending total and deactivate at zero."""
        self.pending_quantity = max(0, self.pending_quantity - quantity)
        self.is_active = self.pending_quantity > 0

    def __repr__(self) -> str:
        return f"<Backorder {self.id} pending={self.pending_quantity}>"
