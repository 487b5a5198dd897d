"""
Backorder Schemas.

Detail lookups return explicit nested records. A missing joined row
(e.g. a sale without a customer) is an explicit None, never a missing key.
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema, PageMeta


# ============================================================================
# FILTERS
# ============================================================================

class BackorderFilters(BaseModel):
    """Filters for the backorder registry. Inactive rows are always excluded."""
    search: Optional[str] = Field(
        None,
        description="Matches product name, code or description, sale invoice number, customer name"
    )
    product_id: Optional[UUID] = None
    sale_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    pending_quantity_min: Optional[int] = Field(None, ge=0)
    pending_quantity_max: Optional[int] = Field(None, ge=0)
    created_at_start: Optional[datetime] = None
    created_at_end: Optional[datetime] = None


# ============================================================================
# RECORDS
# ============================================================================

class BackorderResponse(BaseResponseSchema):
    """Backorder row."""
    id: UUID
    product_id: UUID
    store_id: UUID
    sale_item_id: UUID
    pending_quantity: int
    original_pending_quantity: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProductSummary(BaseResponseSchema):
    id: UUID
    product_code: str
    name: str
    description: Optional[str] = None


class CustomerSummary(BaseResponseSchema):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class SaleDetail(BaseResponseSchema):
    id: UUID
    invoice_number: str
    sale_date: datetime
    status: str
    customer: Optional[CustomerSummary] = None


class SaleItemDetail(BaseResponseSchema):
    id: UUID
    quantity: int
    fulfilled_quantity: int
    backorder_quantity: int
    has_backorder: bool
    product_name: Optional[str] = None
    product_code: Optional[str] = None
    sale: Optional[SaleDetail] = None


class BackorderDetail(BaseModel):
    """Backorder with its product and sale context."""
    backorder: BackorderResponse
    product: Optional[ProductSummary] = None
    sale_item: Optional[SaleItemDetail] = None


class BackorderListResponse(PageMeta):
    """Paginated list of backorders."""
    items: List[BackorderDetail]


# ============================================================================
# FULFILLMENT
# ============================================================================

class FulfillBackorderRequest(BaseCreateSchema):
    """Request to fulfill a backorder from one lot."""
    inventory_lot_id: UUID
    requested_quantity: Optional[int] = Field(
        None,
        description="Defaults to the full pending quantity, always clamped to lot stock"
    )


class FulfillmentResult(BaseModel):
    """Outcome of a fulfillment."""
    backorder_id: UUID
    sale_item_id: UUID
    inventory_lot_id: UUID
    fulfilled_quantity: int
    remaining_pending_quantity: int
    backorder_active: bool
