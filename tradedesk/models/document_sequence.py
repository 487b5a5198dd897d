"""
Document Sequence Model for Atomic Number Generation

NUMBERING:
━━━━━━━━━━
• Monthly periods, the sequence restarts at 0001 every month
• One counter row per (document type, period), locked with SELECT FOR UPDATE
• Format: {PREFIX}{YYYY}/{MM}/{SEQUENCE}

DOCUMENT FORMATS:
━━━━━━━━━━━━━━━━
• PURCHASE:        P-2026/10/0001
• PURCHASE_ORDER:  PO-2026/10/0001
• SHIPMENT:        NBSSHP:2026/10/0001
• WAYBILL:         WB2026/10/0001
• RECEIPT:         NBSINV:2026/10/0001
• PAYMENT:         PAY-2026/10/0001
"""

import uuid
from datetime import datetime, timezone
from typing import Optional
from enum import Enum

from sqlalchemy import String, Integer, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tradedesk.database import Base
from tradedesk.db_types import UUIDType


class DocumentType(str, Enum):
    """Document types that use sequence numbering."""
    PURCHASE = "PURCHASE"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    SHIPMENT = "SHIPMENT"
    WAYBILL = "WAYBILL"
    RECEIPT = "RECEIPT"
    PAYMENT = "PAYMENT"


class DocumentSequenceAudit(Base):
    """
    Audit log for document sequence operations.

    Tracks allocations, claims of caller supplied numbers and repairs.
    """
    __tablename__ = "document_sequence_audit"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    document_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True
    )
    period: Mapped[str] = mapped_column(
        String(7),
        nullable=False
    )
    operation: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="GET_NEXT, CLAIM, SYNC"
    )
    old_number: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True
    )
    new_number: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True
    )
    document_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class DocumentSequence(Base):
    """
    Per-period counter for one document type.

    Example:
        document_type = "WAYBILL"
        prefix = "WB"
        period = "2026/10"
        current_number = 42
        → Next waybill number: WB2026/10/0043
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "document_type", "period",
            name="uq_document_type_period"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Document Identification
    document_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="PURCHASE, PURCHASE_ORDER, SHIPMENT, WAYBILL, RECEIPT, PAYMENT"
    )
    prefix: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Text before the year, e.g. P- or NBSINV:"
    )

    # Period (YYYY/MM)
    period: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="e.g., 2026/10"
    )

    # Sequence Counter
    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used sequence number"
    )

    # Formatting
    padding_length: Mapped[int] = mapped_column(
        Integer,
        default=4,
        comment="Zero padding for sequence (4 = 0001)"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def format_number(self, number: int) -> str:
        return format_document_number(self.prefix, self.period, number, self.padding_length)

    def get_next_number(self) -> str:
        """
        Generate next document number.

        NOTE: This method increments current_number but does NOT
        commit to database. The caller must handle the transaction.
        """
        self.current_number += 1
        return self.format_number(self.current_number)

    @staticmethod
    def get_period(now: Optional[datetime] = None) -> str:
        """
        Get the numbering period for a moment in time.

        - 2026-01-15 → "2026/01"
        - 2026-10-19 → "2026/10"
        """
        now = now or datetime.now(timezone.utc)
        return f"{now.year:04d}/{now.month:02d}"

    def __repr__(self) -> str:
        return f"<DocumentSequence({self.document_type} {self.period}: {self.current_number})>"


def format_document_number(prefix: str, period: str, number: int, padding: int = 4) -> str:
    return f"{prefix}{period}/{str(number).zfill(padding)}"
