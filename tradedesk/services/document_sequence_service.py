"""
Document Sequence Service

Monthly document numbering, format {PREFIX}{YYYY}/{MM}/{SEQUENCE:4}.

Two ways to get a number:

- generate_document_number(): a candidate for display in a form. It reads
  the most recently created document of the month and the period counter
  and returns the next value. Nothing is reserved, so two callers can get
  the same candidate. Saving a document with a taken number fails with
  DuplicateDocumentNumberError and the caller asks for a fresh candidate.
- next_number(): allocation inside the document insert transaction. The
  (document type, period) counter row is locked with SELECT FOR UPDATE and
  incremented, so concurrent creates never collide.

USAGE:
    service = DocumentSequenceService(db)
    number = await service.next_number(DocumentType.WAYBILL)
    # Returns: WB2026/10/0001
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tradedesk.config import settings
from tradedesk.core.exceptions import DuplicateDocumentNumberError, ValidationFailureError
from tradedesk.models.document_sequence import (
    DocumentSequence,
    DocumentSequenceAudit,
    DocumentType,
    format_document_number,
)
from tradedesk.models.purchase import Purchase, PurchaseOrder
from tradedesk.models.shipment import Shipment
from tradedesk.models.waybill import Waybill
from tradedesk.models.finance import Receipt, PaymentReceived

logger = logging.getLogger(__name__)


# Document type metadata. {company} is replaced with the company reference prefix.
DOCUMENT_METADATA = {
    DocumentType.PURCHASE: {
        "name": "Purchase", "prefix": "P-", "model": Purchase, "column": "purchase_number",
    },
    DocumentType.PURCHASE_ORDER: {
        "name": "Purchase Order", "prefix": "PO-", "model": PurchaseOrder, "column": "purchase_order_number",
    },
    DocumentType.SHIPMENT: {
        "name": "Shipment", "prefix": "{company}SHP:", "model": Shipment, "column": "shipment_number",
    },
    DocumentType.WAYBILL: {
        "name": "Waybill", "prefix": "WB", "model": Waybill, "column": "waybill_number",
    },
    DocumentType.RECEIPT: {
        "name": "Receipt", "prefix": "{company}INV:", "model": Receipt, "column": "receipt_number",
    },
    DocumentType.PAYMENT: {
        "name": "Payment Received", "prefix": "PAY-", "model": PaymentReceived, "column": "payment_ref_number",
    },
}

SEQUENCE_PADDING = 4


def parse_sequence(document_number: Optional[str]) -> int:
    """Trailing numeric segment of a document number, 0 when absent or malformed."""
    if not document_number:
        return 0
    tail = document_number.rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else 0


class DocumentSequenceService:
    """
    Service for generating document numbers.

    Counter rows are only touched under SELECT FOR UPDATE. The service
    flushes but never commits; the caller owns the transaction.
    """

    def __init__(
        self,
        db: AsyncSession,
        company_code: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ):
        self.db = db
        self.company_code = company_code or settings.COMPANY_REF_PREFIX
        self.user_id = user_id

    # ==================== Helpers ====================

    @staticmethod
    def resolve_type(document_type: Union[str, DocumentType]) -> DocumentType:
        if isinstance(document_type, DocumentType):
            return document_type
        try:
            return DocumentType(str(document_type).upper())
        except ValueError:
            valid_types = ", ".join(t.value for t in DocumentType)
            raise ValidationFailureError(
                f"Invalid document type '{document_type}'. Valid types: {valid_types}"
            )

    def get_prefix(self, document_type: DocumentType) -> str:
        return DOCUMENT_METADATA[document_type]["prefix"].format(company=self.company_code)

    def _number_column(self, document_type: DocumentType):
        metadata = DOCUMENT_METADATA[document_type]
        model = metadata["model"]
        return model, getattr(model, metadata["column"])

    async def _log_audit(
        self,
        document_type: DocumentType,
        period: str,
        operation: str,
        old_number: Optional[int] = None,
        new_number: Optional[int] = None,
        document_number: Optional[str] = None,
    ):
        """Log an audit record for sequence operations."""
        audit = DocumentSequenceAudit(
            document_type=document_type.value,
            period=period,
            operation=operation,
            old_number=old_number,
            new_number=new_number,
            document_number=document_number,
            user_id=self.user_id,
        )
        self.db.add(audit)

    async def _last_created_sequence(self, document_type: DocumentType, period: str) -> int:
        """Sequence of the most recently created document of the period."""
        model, column = self._number_column(document_type)
        pattern = f"{self.get_prefix(document_type)}{period}/%"
        result = await self.db.execute(
            select(column)
            .where(column.like(pattern))
            .order_by(model.created_at.desc())
            .limit(1)
        )
        return parse_sequence(result.scalar_one_or_none())

    async def _highest_issued_sequence(self, document_type: DocumentType, period: str) -> int:
        """
        Highest sequence persisted for the period.

        Numbers of one period share a prefix, so the longer number wins and
        equal lengths compare as strings. This holds past 9999.
        """
        _, column = self._number_column(document_type)
        pattern = f"{self.get_prefix(document_type)}{period}/%"
        result = await self.db.execute(
            select(column)
            .where(column.like(pattern))
            .order_by(func.length(column).desc(), column.desc())
            .limit(1)
        )
        return parse_sequence(result.scalar())

    async def _get_or_create_sequence(
        self,
        document_type: DocumentType,
        period: str
    ) -> DocumentSequence:
        """
        Get existing sequence with row lock, or create new one.

        A new counter is seeded from the highest number already persisted for
        the period, so documents saved before the counter existed are skipped.
        """
        result = await self.db.execute(
            select(DocumentSequence)
            .where(
                DocumentSequence.document_type == document_type.value,
                DocumentSequence.period == period,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence = result.scalar_one_or_none()

        if sequence:
            return sequence

        seed = await self._highest_issued_sequence(document_type, period)
        sequence = DocumentSequence(
            document_type=document_type.value,
            prefix=self.get_prefix(document_type),
            period=period,
            current_number=seed,
            padding_length=SEQUENCE_PADDING,
        )
        self.db.add(sequence)
        await self.db.flush()

        # Re-fetch with lock to ensure atomicity
        result = await self.db.execute(
            select(DocumentSequence)
            .where(DocumentSequence.id == sequence.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ==================== Public API ====================

    async def generate_document_number(
        self,
        document_type: Union[str, DocumentType],
        now: Optional[datetime] = None
    ) -> str:
        """
        Candidate number for the next document of the current month.

        Does not reserve anything: calling twice with no document saved in
        between returns the same number. The first document of a month
        gets sequence 0001.
        """
        doc_type = self.resolve_type(document_type)
        period = DocumentSequence.get_period(now)

        last_created = await self._last_created_sequence(doc_type, period)
        counter = await self.get_current_number(doc_type, period)

        return format_document_number(
            self.get_prefix(doc_type), period, max(last_created, counter) + 1, SEQUENCE_PADDING
        )

    async def next_number(
        self,
        document_type: Union[str, DocumentType],
        now: Optional[datetime] = None
    ) -> str:
        """
        Allocate the next number with an atomic counter increment.

        Must run in the same transaction as the document insert.
        """
        doc_type = self.resolve_type(document_type)
        period = DocumentSequence.get_period(now)

        sequence = await self._get_or_create_sequence(doc_type, period)
        old_number = sequence.current_number
        document_number = sequence.get_next_number()

        await self._log_audit(
            document_type=doc_type,
            period=period,
            operation="GET_NEXT",
            old_number=old_number,
            new_number=sequence.current_number,
            document_number=document_number,
        )
        await self.db.flush()

        logger.debug(f"Allocated {doc_type.value} number {document_number}")
        return document_number

    async def claim_number(
        self,
        document_type: Union[str, DocumentType],
        document_number: str
    ) -> str:
        """
        Accept a caller supplied number (usually an earlier candidate).

        Raises:
            ValidationFailureError: number does not have the document type's format
            DuplicateDocumentNumberError: number already used by another document
        """
        doc_type = self.resolve_type(document_type)
        document_number = document_number.strip()
        prefix = self.get_prefix(doc_type)

        match = re.fullmatch(rf"{re.escape(prefix)}(\d{{4}})/(\d{{2}})/(\d{{{SEQUENCE_PADDING},}})", document_number)
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValidationFailureError(
                f"Invalid {DOCUMENT_METADATA[doc_type]['name'].lower()} number '{document_number}'. "
                f"Expected format {prefix}YYYY/MM/{'N' * SEQUENCE_PADDING}"
            )

        _, column = self._number_column(doc_type)
        existing = await self.db.execute(select(column).where(column == document_number))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateDocumentNumberError(
                f"{DOCUMENT_METADATA[doc_type]['name']} number {document_number} already exists. "
                f"Please generate a new number."
            )

        period = f"{match.group(1)}/{match.group(2)}"
        claimed = int(match.group(3))

        sequence = await self._get_or_create_sequence(doc_type, period)
        old_number = sequence.current_number
        if claimed > sequence.current_number:
            sequence.current_number = claimed

        await self._log_audit(
            document_type=doc_type,
            period=period,
            operation="CLAIM",
            old_number=old_number,
            new_number=sequence.current_number,
            document_number=document_number,
        )
        await self.db.flush()
        return document_number

    async def assign_number(
        self,
        document_type: Union[str, DocumentType],
        document_number: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> str:
        """Claim the supplied number, or allocate one when none is given."""
        if document_number:
            return await self.claim_number(document_type, document_number)
        return await self.next_number(document_type, now=now)

    async def get_current_number(
        self,
        document_type: Union[str, DocumentType],
        period: Optional[str] = None
    ) -> int:
        """Current (last used) counter value, 0 if no counter exists."""
        doc_type = self.resolve_type(document_type)
        if not period:
            period = DocumentSequence.get_period()

        result = await self.db.execute(
            select(DocumentSequence.current_number)
            .where(
                DocumentSequence.document_type == doc_type.value,
                DocumentSequence.period == period,
                DocumentSequence.is_active == True
            )
        )
        current = result.scalar_one_or_none()
        return current or 0

    async def sync_sequence_from_documents(
        self,
        document_type: Union[str, DocumentType],
        period: Optional[str] = None
    ) -> DocumentSequence:
        """
        Raise the counter to the highest number persisted for the period.

        Use this to repair a counter that fell behind imported documents.
        Never lowers the counter.
        """
        doc_type = self.resolve_type(document_type)
        if not period:
            period = DocumentSequence.get_period()

        highest = await self._highest_issued_sequence(doc_type, period)
        sequence = await self._get_or_create_sequence(doc_type, period)
        old_number = sequence.current_number

        if highest > sequence.current_number:
            sequence.current_number = highest
            logger.info(
                f"Sequence {doc_type.value} {period} repaired: {old_number} -> {highest}"
            )

        await self._log_audit(
            document_type=doc_type,
            period=period,
            operation="SYNC",
            old_number=old_number,
            new_number=sequence.current_number,
        )
        await self.db.flush()
        return sequence
