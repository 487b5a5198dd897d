"""
Shipment models.

Parcels are priced on chargeable weight: the larger of gross weight and
volumetric weight (L x W x H / divisor). Shipment totals are sums over
its parcels.
"""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Boolean, DateTime, Date, ForeignKey, Integer, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradedesk.database import Base
from tradedesk.db_types import UUIDType, MoneyType, WeightType


class ShippingMode(str, Enum):
    """Freight mode. Decides the volumetric divisor."""
    EXPRESS = "express"
    AIR = "air"
    SEA = "sea"


class PackageType(str, Enum):
    BOX = "Box"
    CARTON = "Carton"
    CRATE = "Crate"
    PALLET = "Pallet"
    BAG = "Bag"
    DRUM = "Drum"
    ROLL = "Roll"


class Shipment(Base):
    """Consignment made of one or more parcels."""
    __tablename__ = "shipments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    shipment_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="{COMPANY}SHP:YYYY/MM/NNNN"
    )
    shipping_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    carrier_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    origin: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Totals over parcels
    total_packages: Mapped[int] = mapped_column(Integer, default=0)
    total_items: Mapped[int] = mapped_column(Integer, default=0)
    total_gross_weight: Mapped[Decimal] = mapped_column(WeightType, default=Decimal("0"))
    total_volumetric_weight: Mapped[Decimal] = mapped_column(WeightType, default=Decimal("0"))
    total_chargeable_weight: Mapped[Decimal] = mapped_column(WeightType, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    parcels: Mapped[List["Parcel"]] = relationship(
        "Parcel",
        back_populates="shipment"
    )

    def __repr__(self) -> str:
        return f"<Shipment {self.shipment_number}>"


class Parcel(Base):
    """One physical package in a shipment."""
    __tablename__ = "parcels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    shipment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    parcel_number: Mapped[str] = mapped_column(String(50), nullable=False)
    package_type: Mapped[str] = mapped_column(String(20), default=PackageType.BOX.value)

    # Dimensions in cm
    length: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    width: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    height: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Weights in kg
    net_weight: Mapped[Decimal] = mapped_column(WeightType, default=Decimal("0"))
    gross_weight: Mapped[Decimal] = mapped_column(WeightType, nullable=False)
    volumetric_weight: Mapped[Decimal] = mapped_column(WeightType, nullable=False)
    chargeable_weight: Mapped[Decimal] = mapped_column(WeightType, nullable=False)
    volumetric_divisor: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price_per_kg: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, default=0)

    shipment: Mapped["Shipment"] = relationship("Shipment", back_populates="parcels")
    items: Mapped[List["ParcelItem"]] = relationship(
        "ParcelItem",
        back_populates="parcel"
    )


class ParcelItem(Base):
    """Goods packed in a parcel."""
    __tablename__ = "parcel_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    parcel_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("parcels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id"),
        nullable=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    net_weight: Mapped[Decimal] = mapped_column(WeightType, default=Decimal("0"))

    parcel: Mapped["Parcel"] = relationship("Parcel", back_populates="items")
