"""Receipt and Payment Schemas."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema


class ReceiptCreate(BaseCreateSchema):
    receipt_number: Optional[str] = Field(None, max_length=50)
    sale_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0)
    receipt_date: date
    notes: Optional[str] = None


class ReceiptResponse(BaseResponseSchema):
    id: UUID
    receipt_number: str
    sale_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    amount: Decimal
    receipt_date: date
    notes: Optional[str] = None
    created_at: datetime


class PaymentCreate(BaseCreateSchema):
    payment_ref_number: Optional[str] = Field(None, max_length=50)
    sale_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    payment_method: str = "cash"
    notes: Optional[str] = None


class PaymentResponse(BaseResponseSchema):
    id: UUID
    payment_ref_number: str
    sale_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    amount: Decimal
    payment_date: date
    payment_method: str
    notes: Optional[str] = None
    created_at: datetime
