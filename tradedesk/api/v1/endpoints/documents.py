"""Document numbering API endpoints."""
from typing import Optional

from fastapi import APIRouter, Query

from tradedesk.api.deps import DB, CurrentUserId
from tradedesk.models.document_sequence import DocumentSequence
from tradedesk.schemas.document_sequence import DocumentNumberResponse, SequenceSyncResponse
from tradedesk.services.document_sequence_service import DocumentSequenceService


router = APIRouter(tags=["Document Numbering"])


@router.get("/{kind}/next-number", response_model=DocumentNumberResponse)
async def get_next_number(
    kind: str,
    db: DB,
):
    """
    Candidate number for a new document form, e.g. WB2026/10/0007.

    The number is not reserved. Saving a document with a number someone
    else took in the meantime fails with 409 and a fresh candidate is needed.
    """
    service = DocumentSequenceService(db)
    document_type = service.resolve_type(kind.replace("-", "_"))
    number = await service.generate_document_number(document_type)
    return DocumentNumberResponse(
        document_type=document_type,
        period=DocumentSequence.get_period(),
        document_number=number,
    )


@router.post("/{kind}/sync", response_model=SequenceSyncResponse)
async def sync_sequence(
    kind: str,
    db: DB,
    user_id: CurrentUserId,
    period: Optional[str] = Query(None, pattern=r"^\d{4}/\d{2}$", description="YYYY/MM, defaults to now"),
):
    """Raise the period counter to the highest number already used by saved documents."""
    service = DocumentSequenceService(db, user_id=user_id)
    document_type = service.resolve_type(kind.replace("-", "_"))
    sequence = await service.sync_sequence_from_documents(document_type, period)
    return SequenceSyncResponse(
        document_type=document_type,
        period=sequence.period,
        current_number=sequence.current_number,
    )
