"""Purchase and Purchase Order Schemas."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema


# ============================================================================
# PURCHASE
# ============================================================================

class PurchaseItemCreate(BaseCreateSchema):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)
    lot_number: str = Field(..., min_length=1, max_length=100)
    expiry_date: Optional[date] = None


class PurchaseCreate(BaseCreateSchema):
    """
    Record a purchase.

    Leave purchase_number empty to have the next number allocated.
    When received is true the items are booked into inventory lots.
    """
    purchase_number: Optional[str] = Field(None, max_length=50)
    vendor_name: str = Field(..., min_length=1, max_length=200)
    vendor_invoice_number: Optional[str] = None
    purchase_date: date
    store_id: UUID
    received: bool = False
    notes: Optional[str] = None
    items: List[PurchaseItemCreate] = Field(..., min_length=1)


class PurchaseItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    quantity: int
    unit_cost: Decimal
    total_cost: Decimal
    lot_number: str
    expiry_date: Optional[date] = None


class PurchaseResponse(BaseResponseSchema):
    id: UUID
    purchase_number: str
    vendor_name: str
    vendor_invoice_number: Optional[str] = None
    purchase_date: date
    store_id: UUID
    total_amount: Decimal
    status: str
    is_received: bool
    items: List[PurchaseItemResponse] = []
    created_at: datetime


# ============================================================================
# PURCHASE ORDER
# ============================================================================

class PurchaseOrderCreate(BaseCreateSchema):
    purchase_order_number: Optional[str] = Field(None, max_length=50)
    vendor_name: str = Field(..., min_length=1, max_length=200)
    order_date: date
    store_id: Optional[UUID] = None
    total_amount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None


class PurchaseOrderResponse(BaseResponseSchema):
    id: UUID
    purchase_order_number: str
    vendor_name: str
    order_date: date
    store_id: Optional[UUID] = None
    total_amount: Decimal
    status: str
    created_at: datetime
