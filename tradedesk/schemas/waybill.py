"""Waybill Schemas."""
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema


class WaybillLotDraw(BaseCreateSchema):
    """Quantity to take from one lot."""
    inventory_lot_id: UUID
    quantity: int = Field(..., gt=0)


class WaybillItemCreate(BaseCreateSchema):
    product_id: UUID
    sale_item_id: Optional[UUID] = None
    quantity_requested: Optional[int] = Field(None, gt=0)
    lots: List[WaybillLotDraw] = Field(..., min_length=1)


class WaybillCreate(BaseCreateSchema):
    """Dispatch stock. A waybill linked to a sale is a sale waybill, otherwise a loan."""
    waybill_number: Optional[str] = Field(None, max_length=50)
    store_id: UUID
    sale_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    waybill_date: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[WaybillItemCreate] = Field(..., min_length=1)


class WaybillUpdate(BaseCreateSchema):
    """
    Replace the lines of a dispatched waybill.

    The previous lot draws are returned to stock and the new ones taken, in
    one transaction. Number, type and sale stay as they were.
    """
    customer_id: Optional[UUID] = None
    waybill_date: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[WaybillItemCreate] = Field(..., min_length=1)


class LoanConversionItem(BaseCreateSchema):
    """Part of a loan waybill line to book against a sale item."""
    waybill_item_id: UUID
    sale_item_id: UUID
    quantity: int = Field(..., gt=0)


class LoanConversionRequest(BaseCreateSchema):
    """Book goods already out on loan against a sale."""
    waybill_number: Optional[str] = Field(None, max_length=50)
    sale_id: UUID
    conversion_date: Optional[datetime] = None
    notes: Optional[str] = None
    items: List[LoanConversionItem] = Field(..., min_length=1)


class WaybillItemInventoryResponse(BaseResponseSchema):
    id: UUID
    inventory_lot_id: UUID
    lot_number: str
    quantity_taken: int


class WaybillItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    sale_item_id: Optional[UUID] = None
    quantity_requested: int
    quantity_supplied: int
    quantity_converted: int = 0
    inventories: List[WaybillItemInventoryResponse] = []


class WaybillResponse(BaseResponseSchema):
    id: UUID
    waybill_number: str
    waybill_type: str
    sale_id: Optional[UUID] = None
    original_loan_waybill_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    store_id: UUID
    waybill_date: datetime
    status: str
    notes: Optional[str] = None
    is_active: bool
    items: List[WaybillItemResponse] = []
