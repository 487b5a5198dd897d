"""
Shipment Service.

Parcel pricing:

    volumetric weight = length x width x height / divisor   (cm, kg)
    chargeable weight = max(gross weight, volumetric weight)
    amount            = unit price per kg x chargeable weight

The divisor is AIR_VOLUMETRIC_DIVISOR (5000) for air and express and
SEA_VOLUMETRIC_DIVISOR (6000) for sea freight, unless a parcel sets its own.
"""
import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tradedesk.config import settings
from tradedesk.core.exceptions import TradeDeskError, ValidationFailureError, DuplicateDocumentNumberError
from tradedesk.models.document_sequence import DocumentType
from tradedesk.models.shipment import Shipment, Parcel, ParcelItem, ShippingMode
from tradedesk.schemas.shipment import ParcelInput, ParcelQuote, ShipmentCreate
from tradedesk.services.document_sequence_service import DocumentSequenceService

logger = logging.getLogger(__name__)

WEIGHT_PLACES = Decimal("0.001")
MONEY_PLACES = Decimal("0.01")


def volumetric_divisor_for(shipping_mode: Union[str, ShippingMode]) -> int:
    if ShippingMode(shipping_mode) == ShippingMode.SEA:
        return settings.SEA_VOLUMETRIC_DIVISOR
    return settings.AIR_VOLUMETRIC_DIVISOR


def calculate_parcel(
    parcel: ParcelInput,
    shipping_mode: Union[str, ShippingMode],
    parcel_number: Optional[str] = None,
) -> ParcelQuote:
    """
    Weights and price of one parcel.

    Raises:
        ValidationFailureError: non-positive dimensions, gross weight or price,
            no items, or gross weight below the items' net weight
    """
    label = parcel.parcel_number or parcel_number or "parcel"

    if parcel.length <= 0 or parcel.width <= 0 or parcel.height <= 0:
        raise ValidationFailureError(f"{label}: length, width and height must be greater than 0")
    if parcel.gross_weight <= 0:
        raise ValidationFailureError(f"{label}: gross weight must be greater than 0")
    if not parcel.items:
        raise ValidationFailureError(f"{label}: add at least one item")
    if parcel.unit_price_per_kg <= 0:
        raise ValidationFailureError(f"{label}: unit price per kg must be greater than 0")

    net_weight = sum((item.net_weight for item in parcel.items), Decimal("0"))
    if parcel.gross_weight < net_weight:
        raise ValidationFailureError(
            f"{label}: gross weight {parcel.gross_weight} kg is below the items' net weight {net_weight} kg"
        )

    divisor = parcel.volumetric_divisor or volumetric_divisor_for(shipping_mode)
    volumetric = (parcel.length * parcel.width * parcel.height / Decimal(divisor)).quantize(
        WEIGHT_PLACES, rounding=ROUND_HALF_UP
    )
    gross = parcel.gross_weight.quantize(WEIGHT_PLACES, rounding=ROUND_HALF_UP)
    chargeable = max(gross, volumetric)

    return ParcelQuote(
        parcel_number=parcel.parcel_number or parcel_number,
        volumetric_divisor=divisor,
        net_weight=net_weight.quantize(WEIGHT_PLACES, rounding=ROUND_HALF_UP),
        gross_weight=gross,
        volumetric_weight=volumetric,
        chargeable_weight=chargeable,
        weight_basis="VOLUMETRIC" if volumetric > gross else "GROSS",
        unit_price_per_kg=parcel.unit_price_per_kg,
        total_amount=(parcel.unit_price_per_kg * chargeable).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP),
        total_items=sum(item.quantity for item in parcel.items),
    )


class ShipmentService:
    """Service for shipments and their parcels."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_shipment(self, shipment_id: uuid.UUID) -> Optional[Shipment]:
        result = await self.db.execute(
            select(Shipment)
            .options(selectinload(Shipment.parcels).selectinload(Parcel.items))
            .where(Shipment.id == shipment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_shipment(self, data: ShipmentCreate, user_id: Optional[uuid.UUID] = None) -> Shipment:
        """Create a shipment with priced parcels. Totals are summed over the parcels."""
        quotes = [
            calculate_parcel(parcel, data.shipping_mode, parcel_number=f"PKG-{index:03d}")
            for index, parcel in enumerate(data.parcels, start=1)
        ]

        try:
            numbering = DocumentSequenceService(self.db, user_id=user_id)
            shipment_number = await numbering.assign_number(DocumentType.SHIPMENT, data.shipment_number)

            shipment = Shipment(
                shipment_number=shipment_number,
                shipping_mode=ShippingMode(data.shipping_mode).value,
                carrier_name=data.carrier_name,
                tracking_number=data.tracking_number,
                shipping_date=data.shipping_date,
                origin=data.origin,
                destination=data.destination,
                total_packages=len(quotes),
                total_items=sum(q.total_items for q in quotes),
                total_gross_weight=sum((q.gross_weight for q in quotes), Decimal("0")),
                total_volumetric_weight=sum((q.volumetric_weight for q in quotes), Decimal("0")),
                total_chargeable_weight=sum((q.chargeable_weight for q in quotes), Decimal("0")),
                total_amount=sum((q.total_amount for q in quotes), Decimal("0")),
                notes=data.notes,
            )
            self.db.add(shipment)
            await self.db.flush()

            for parcel_input, quote in zip(data.parcels, quotes):
                parcel = Parcel(
                    shipment_id=shipment.id,
                    parcel_number=quote.parcel_number,
                    package_type=parcel_input.package_type.value,
                    length=parcel_input.length,
                    width=parcel_input.width,
                    height=parcel_input.height,
                    net_weight=quote.net_weight,
                    gross_weight=quote.gross_weight,
                    volumetric_weight=quote.volumetric_weight,
                    chargeable_weight=quote.chargeable_weight,
                    volumetric_divisor=quote.volumetric_divisor,
                    unit_price_per_kg=quote.unit_price_per_kg,
                    total_amount=quote.total_amount,
                    total_items=quote.total_items,
                )
                self.db.add(parcel)
                await self.db.flush()

                for item in parcel_input.items:
                    self.db.add(ParcelItem(
                        parcel_id=parcel.id,
                        product_id=item.product_id,
                        description=item.description,
                        quantity=item.quantity,
                        net_weight=item.net_weight,
                    ))

            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Shipment rejected: {e}")
            raise DuplicateDocumentNumberError("Shipment number already exists. Please generate a new number.")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Shipment rolled back: {e}")
            raise

        logger.info(
            f"Shipment {shipment_number} created: {len(quotes)} parcel(s), "
            f"chargeable {shipment.total_chargeable_weight} kg"
        )
        return await self.get_shipment(shipment.id)
