"""Shipment API endpoints: parcel quotes and shipment creation."""
from fastapi import APIRouter, status

from tradedesk.api.deps import DB, CurrentUserId
from tradedesk.schemas.shipment import (
    ParcelQuoteRequest,
    ParcelQuote,
    ShipmentCreate,
    ShipmentResponse,
)
from tradedesk.services.shipment_service import ShipmentService, calculate_parcel


router = APIRouter(tags=["Shipments"])


@router.post("/parcels/quote", response_model=ParcelQuote)
async def quote_parcel(data: ParcelQuoteRequest):
    """Volumetric and chargeable weight and price of a parcel. Nothing is saved."""
    return calculate_parcel(data.parcel, data.shipping_mode)


@router.post("", response_model=ShipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    data: ShipmentCreate,
    db: DB,
    user_id: CurrentUserId,
):
    service = ShipmentService(db)
    shipment = await service.create_shipment(data, user_id)
    return ShipmentResponse.model_validate(shipment)
