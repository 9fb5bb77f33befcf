"""
Pydantic request/response schemas for the /api/v1/invoices endpoints.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from docintake.models.tables import EnergyInvoice
from docintake.pipeline.confidence import ConfidenceBand, confidence_band, overall_confidence


class InvoiceResponse(BaseModel):
    """Energy invoice with the owning document's status."""
    invoice_id: str
    doc_id: str
    invoice_date: Optional[date] = None
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None
    reading_type: str
    kwh_used: Optional[Decimal] = None
    confidence_invoice_date: Optional[int] = None
    confidence_reading_type: Optional[int] = None
    confidence_kwh: Optional[int] = None
    overall_confidence: Optional[int] = None
    confidence_band: ConfidenceBand = ConfidenceBand.NOT_AVAILABLE
    reviewer_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    document_status: Optional[str] = None
    file_name: Optional[str] = None
    supplier_name: Optional[str] = None

    @classmethod
    def from_invoice(cls, invoice: EnergyInvoice, document=None) -> "InvoiceResponse":
        overall = overall_confidence(invoice.field_confidences)
        return cls(
            invoice_id=str(invoice.invoice_id),
            doc_id=str(invoice.doc_id),
            invoice_date=invoice.invoice_date,
            billing_period_start=invoice.billing_period_start,
            billing_period_end=invoice.billing_period_end,
            reading_type=invoice.reading_type,
            kwh_used=invoice.kwh_used,
            confidence_invoice_date=invoice.confidence_invoice_date,
            confidence_reading_type=invoice.confidence_reading_type,
            confidence_kwh=invoice.confidence_kwh,
            overall_confidence=overall,
            confidence_band=confidence_band(overall),
            reviewer_notes=invoice.reviewer_notes,
            reviewed_by=str(invoice.reviewed_by) if invoice.reviewed_by else None,
            reviewed_at=invoice.reviewed_at,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            document_status=document.status if document is not None else None,
            file_name=document.file_name if document is not None else None,
            supplier_name=document.supplier_name if document is not None else None,
        )


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceResponse]
    total: int
    limit: int
    offset: int


class ApprovalResponse(BaseModel):
    invoice: InvoiceResponse
    document_status: str
    overall_confidence: int
    invalidates: list[str] = []


class InvoiceUpdateResponse(BaseModel):
    invoice: InvoiceResponse
    invalidates: list[str] = []


class CleanupResponse(BaseModel):
    doc_id: str
    invoice_id: Optional[str] = None
    completed_steps: list[str]
    invalidates: list[str] = []
