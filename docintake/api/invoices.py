"""
/api/v1/invoices endpoints.
Listing, reviewer edits, approval, deletion and snapshot exports.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, require
from docintake.api import invalidation
from docintake.dependencies import get_artifact_store, get_current_actor, get_db, parse_uuid
from docintake.exports.invoices import export_invoices_csv, export_invoices_xlsx
from docintake.models.enums import DocumentStatus
from docintake.models.tables import Document, EnergyInvoice
from docintake.review.approval import (
    InvoiceChanges,
    approve_invoice,
    delete_invoice,
    load_document,
    load_invoice,
    update_invoice,
)
from docintake.schemas.invoices import (
    ApprovalResponse,
    CleanupResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdateResponse,
)
from docintake.storage.artifact_store import ArtifactStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _snapshot(
    session: AsyncSession,
    status_filter: Optional[DocumentStatus] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> tuple[list[InvoiceResponse], int]:
    query = select(EnergyInvoice, Document).join(Document, EnergyInvoice.doc_id == Document.doc_id)
    if status_filter:
        query = query.where(Document.status == status_filter.value)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = query.order_by(EnergyInvoice.created_at.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    invoices = [InvoiceResponse.from_invoice(invoice, doc) for invoice, doc in result.all()]
    return invoices, total


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Energy invoices, newest first, with their document's status."""
    require(actor, Capability.READ)
    invoices, total = await _snapshot(session, status_filter, limit, offset)
    return InvoiceListResponse(invoices=invoices, total=total, limit=limit, offset=offset)


@router.get("/export/csv")
async def export_csv(
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Export the current invoice list as CSV."""
    require(actor, Capability.READ)
    invoices, _ = await _snapshot(session, status_filter)
    logger.info("invoices_exported", format="csv", rows=len(invoices))
    return StreamingResponse(
        iter([export_invoices_csv(invoices)]),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="energy_invoices.csv"'},
    )


@router.get("/export/xlsx")
async def export_xlsx(
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Export the current invoice list as a formatted Excel workbook."""
    require(actor, Capability.READ)
    invoices, _ = await _snapshot(session, status_filter)
    logger.info("invoices_exported", format="xlsx", rows=len(invoices))
    return StreamingResponse(
        iter([export_invoices_xlsx(invoices)]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="energy_invoices.xlsx"'},
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require(actor, Capability.READ)
    invoice = await load_invoice(session, parse_uuid(invoice_id, "invoice_id"))
    doc = await load_document(session, invoice.doc_id)
    return InvoiceResponse.from_invoice(invoice, doc)


@router.patch("/{invoice_id}", response_model=InvoiceUpdateResponse)
async def patch_invoice(
    invoice_id: str,
    changes: InvoiceChanges,
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Save reviewer edits. The document status is left as it is."""
    invoice = await update_invoice(session, parse_uuid(invoice_id, "invoice_id"), changes, actor)
    doc = await load_document(session, invoice.doc_id)
    return InvoiceUpdateResponse(
        invoice=InvoiceResponse.from_invoice(invoice, doc),
        invalidates=invalidation.for_document(doc.doc_id, invoice.invoice_id, status_changed=False),
    )


@router.post("/{invoice_id}/approve", response_model=ApprovalResponse)
async def approve(
    invoice_id: str,
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Approve the invoice as currently stored."""
    invoice = await approve_invoice(session, parse_uuid(invoice_id, "invoice_id"), actor)
    doc = await load_document(session, invoice.doc_id)
    # The status was written with a bulk UPDATE; reload the identity-mapped row
    await session.refresh(doc)
    return ApprovalResponse(
        invoice=InvoiceResponse.from_invoice(invoice, doc),
        document_status=doc.status,
        overall_confidence=doc.overall_confidence,
        invalidates=invalidation.for_document(doc.doc_id, invoice.invoice_id),
    )


@router.delete("/{invoice_id}", response_model=CleanupResponse)
async def remove_invoice(
    invoice_id: str,
    session: AsyncSession = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
    actor: Actor = Depends(get_current_actor),
):
    """Delete the invoice, its document and the stored file."""
    report = await delete_invoice(session, store, parse_uuid(invoice_id, "invoice_id"), actor)
    return CleanupResponse(
        doc_id=report.doc_id,
        invoice_id=report.invoice_id,
        completed_steps=report.completed_steps,
        invalidates=invalidation.for_document(report.doc_id, report.invoice_id),
    )
