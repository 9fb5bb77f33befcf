"""
Pydantic request/response schemas for the /api/v1/documents endpoints.
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from docintake.models.tables import Document
from docintake.pipeline.confidence import ConfidenceBand, confidence_band
from docintake.pipeline.lifecycle import RETRYABLE_STATUSES, processing_step_label
from docintake.schemas.invoices import InvoiceResponse


class DocumentUploadResponse(BaseModel):
    """Response after uploading a document."""
    doc_id: str
    file_name: str
    file_size_bytes: int
    document_type: str
    status: str
    extraction_scheduled: bool = False
    invalidates: list[str] = []


class DocumentSummary(BaseModel):
    """Lightweight document summary for list endpoints."""
    doc_id: str
    file_name: str
    document_type: str
    status: str
    processing_step: str
    can_extract: bool = False
    overall_confidence: Optional[int] = None
    confidence_band: ConfidenceBand = ConfidenceBand.NOT_AVAILABLE
    supplier_name: Optional[str] = None
    uploaded_at: datetime
    uploaded_by: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentSummary":
        return cls(
            doc_id=str(doc.doc_id),
            file_name=doc.file_name,
            document_type=doc.document_type,
            status=doc.status,
            processing_step=processing_step_label(doc.status),
            can_extract=doc.status in {s.value for s in RETRYABLE_STATUSES},
            overall_confidence=doc.overall_confidence,
            confidence_band=confidence_band(doc.overall_confidence),
            supplier_name=doc.supplier_name,
            uploaded_at=doc.uploaded_at,
            uploaded_by=str(doc.uploaded_by) if doc.uploaded_by else None,
        )


class DocumentListResponse(BaseModel):
    """Paginated document list response."""
    documents: list[DocumentSummary]
    total: int
    limit: int
    offset: int


class DocumentDetail(DocumentSummary):
    """Full document detail response."""
    mime_type: str
    file_size_bytes: Optional[int] = None
    updated_at: datetime
    invoice: Optional[InvoiceResponse] = None

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentDetail":
        # `doc.invoice` must already be loaded (selectinload) in async code
        invoice = doc.invoice
        return cls(
            **DocumentSummary.from_document(doc).model_dump(),
            mime_type=doc.mime_type,
            file_size_bytes=doc.file_size_bytes,
            updated_at=doc.updated_at,
            invoice=InvoiceResponse.from_invoice(invoice, doc) if invoice is not None else None,
        )


class PreviewUrlResponse(BaseModel):
    doc_id: str
    signed_url: str
    expires_in: int


class ExtractionResponse(BaseModel):
    """Outcome of a synchronous (retry) extraction."""
    doc_id: str
    invoice_id: str
    status: str
    overall_confidence: Optional[int] = None
    needs_review: bool
    extraction: dict
    duration_ms: int
    invalidates: list[str] = []


class ReviewQueueResponse(BaseModel):
    """Documents awaiting review (oldest first) plus per-status counts."""
    documents: list[DocumentDetail]
    stats: dict[str, int]
    limit: int
    offset: int
