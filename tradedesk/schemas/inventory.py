"""Inventory Schemas."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema, PageMeta


# ============================================================================
# STOCK RECEIPT
# ============================================================================

class StockReceiptItem(BaseCreateSchema):
    """One lot line of a stock receipt."""
    product_id: UUID
    lot_number: str = Field(..., min_length=1, max_length=100)
    quantity: int
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    selling_price: Decimal = Field(Decimal("0"), ge=0)
    manufacture_date: Optional[date] = None
    expiry_date: Optional[date] = None


class StockReceiptRequest(BaseCreateSchema):
    """Add stock to lots at one store."""
    store_id: UUID
    items: List[StockReceiptItem] = Field(..., min_length=1)
    received_date: Optional[datetime] = None
    notes: Optional[str] = None


# ============================================================================
# LOTS
# ============================================================================

class InventoryLotResponse(BaseResponseSchema):
    """Inventory lot."""
    id: UUID
    product_id: UUID
    store_id: UUID
    lot_number: str
    quantity: int
    cost_price: Optional[Decimal] = None
    selling_price: Optional[Decimal] = None
    manufacture_date: Optional[date] = None
    expiry_date: Optional[date] = None
    received_date: Optional[datetime] = None
    is_active: bool
    created_at: datetime


class InventoryLotListResponse(PageMeta):
    items: List[InventoryLotResponse]


class ProductStock(BaseModel):
    """On-hand quantity of a product, summed from its active lots."""
    product_id: UUID
    store_id: Optional[UUID] = None
    quantity: int
    lot_count: int
    alert_quantity: int
    max_alert_quantity: int
    is_low_stock: bool
    is_over_stock: bool


class ReorderAlert(BaseModel):
    product_id: UUID
    product_code: str
    name: str
    quantity: int
    alert_quantity: int
    max_alert_quantity: int
    alert_type: str = Field(..., description="low or over")


# ============================================================================
# TRANSACTION LOG
# ============================================================================

class InventoryTransactionFilters(BaseModel):
    product_id: Optional[UUID] = None
    store_id: Optional[UUID] = None
    inventory_lot_id: Optional[UUID] = None
    transaction_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class InventoryTransactionResponse(BaseResponseSchema):
    id: UUID
    inventory_lot_id: Optional[UUID] = None
    product_id: UUID
    store_id: UUID
    user_id: Optional[UUID] = None
    transaction_type: str
    quantity_before: int
    quantity_after: int
    transaction_date: datetime
    reference_id: Optional[UUID] = None
    notes: Optional[str] = None


class InventoryTransactionListResponse(PageMeta):
    items: List[InventoryTransactionResponse]
