"""Sale Schemas."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema


class SaleItemCreate(BaseCreateSchema):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(Decimal("0"), ge=0)


class SaleCreate(BaseCreateSchema):
    """
    Create a sale.

    Stock on hand at the store is designated to the items oldest lot first.
    Whatever cannot be covered opens a backorder.
    """
    invoice_number: str = Field(..., min_length=1, max_length=50)
    store_id: UUID
    customer_id: Optional[UUID] = None
    sale_date: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[SaleItemCreate] = Field(..., min_length=1)


class SaleItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    store_id: UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    fulfilled_quantity: int
    backorder_quantity: int
    has_backorder: bool
    product_name: Optional[str] = None
    product_code: Optional[str] = None


class SaleResponse(BaseResponseSchema):
    id: UUID
    invoice_number: str
    sale_date: datetime
    customer_id: Optional[UUID] = None
    store_id: UUID
    total_amount: Decimal
    status: str
    notes: Optional[str] = None
    items: List[SaleItemResponse] = []
    created_at: datetime
