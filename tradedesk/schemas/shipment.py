"""
Shipment Schemas.

Weights are in kg, dimensions in cm, prices per kg of chargeable weight.
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field

from tradedesk.models.shipment import ShippingMode, PackageType
from tradedesk.schemas.base import BaseResponseSchema, BaseCreateSchema


# ============================================================================
# PARCEL INPUT
# ============================================================================

class ParcelItemInput(BaseCreateSchema):
    product_id: Optional[UUID] = None
    description: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, ge=1)
    net_weight: Decimal = Field(Decimal("0"), ge=0)


class ParcelInput(BaseCreateSchema):
    parcel_number: Optional[str] = None
    package_type: PackageType = PackageType.BOX
    length: Decimal
    width: Decimal
    height: Decimal
    gross_weight: Decimal
    unit_price_per_kg: Decimal
    volumetric_divisor: Optional[int] = Field(
        None,
        gt=0,
        description="Overrides the divisor of the shipping mode"
    )
    items: List[ParcelItemInput] = []


class ParcelQuoteRequest(BaseCreateSchema):
    shipping_mode: ShippingMode
    parcel: ParcelInput


class ParcelQuote(BaseModel):
    """Calculated weights and price of a parcel."""
    parcel_number: Optional[str] = None
    volumetric_divisor: int
    net_weight: Decimal
    gross_weight: Decimal
    volumetric_weight: Decimal
    chargeable_weight: Decimal
    weight_basis: str = Field(..., description="GROSS or VOLUMETRIC")
    unit_price_per_kg: Decimal
    total_amount: Decimal
    total_items: int


# ============================================================================
# SHIPMENT
# ============================================================================

class ShipmentCreate(BaseCreateSchema):
    shipment_number: Optional[str] = Field(None, max_length=50)
    shipping_mode: ShippingMode
    carrier_name: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_date: Optional[date] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    notes: Optional[str] = None
    parcels: List[ParcelInput] = Field(..., min_length=1)


class ParcelItemResponse(BaseResponseSchema):
    id: UUID
    product_id: Optional[UUID] = None
    description: str
    quantity: int
    net_weight: Decimal


class ParcelResponse(BaseResponseSchema):
    id: UUID
    parcel_number: str
    package_type: str
    length: Decimal
    width: Decimal
    height: Decimal
    net_weight: Decimal
    gross_weight: Decimal
    volumetric_weight: Decimal
    chargeable_weight: Decimal
    volumetric_divisor: int
    unit_price_per_kg: Decimal
    total_amount: Decimal
    total_items: int
    items: List[ParcelItemResponse] = []


class ShipmentResponse(BaseResponseSchema):
    id: UUID
    shipment_number: str
    shipping_mode: str
    carrier_name: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_date: Optional[date] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    total_packages: int
    total_items: int
    total_gross_weight: Decimal
    total_volumetric_weight: Decimal
    total_chargeable_weight: Decimal
    total_amount: Decimal
    status: str
    parcels: List[ParcelResponse] = []
    created_at: datetime
