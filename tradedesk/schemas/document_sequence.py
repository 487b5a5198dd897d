"""Document numbering Schemas."""
from pydantic import BaseModel

from tradedesk.models.document_sequence import DocumentType


class DocumentNumberResponse(BaseModel):
    """Candidate number. Not reserved until a document is saved with it."""
    document_type: DocumentType
    period: str
    document_number: str


class SequenceSyncResponse(BaseModel):
    document_type: DocumentType
    period: str
    current_number: int
