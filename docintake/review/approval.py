"""
Human-in-the-loop review: edit, approve, delete.

Approval is a trust assertion over the values currently stored: it never
changes invoice field values, only confidences and review stamps. Clients
that want to correct values save the edit first, then approve.

Deletion is an explicit three-step cleanup (invoice row, stored file,
document row). Storage removal is an external side effect, so each step is
committed on its own and a failure reports exactly which steps completed.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, require
from docintake.audit.log import record_action
from docintake.errors import InvalidTransitionError, NotFoundError, PersistenceError
from docintake.models.enums import AuditAction, DocumentStatus, EntityType, ReadingType
from docintake.models.tables import Document, EnergyInvoice, utcnow
from docintake.observability.metrics import documents_deleted_total, invoices_approved_total
from docintake.pipeline.lifecycle import transition
from docintake.storage.artifact_store import ArtifactStore, UnresolvableReferenceError

logger = structlog.get_logger(__name__)

FULL_CONFIDENCE = 100

# Re-approving an approved invoice is allowed and idempotent
APPROVABLE_STATUSES = frozenset({DocumentStatus.NEEDS_REVIEW, DocumentStatus.APPROVED})

STEP_DELETE_INVOICE = "delete_invoice"
STEP_DELETE_FILE = "delete_file"
STEP_DELETE_DOCUMENT = "delete_document"


class InvoiceChanges(BaseModel):
    """Reviewer-editable invoice fields. Unset fields are left untouched."""
    invoice_date: Optional[date] = None
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None
    reading_type: Optional[ReadingType] = None
    kwh_used: Optional[Decimal] = Field(default=None, ge=0)
    reviewer_notes: Optional[str] = None


class CleanupReport(BaseModel):
    doc_id: str
    invoice_id: Optional[str] = None
    completed_steps: list[str] = []
    failed_step: Optional[str] = None
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.failed_step is None


async def load_invoice(session: AsyncSession, invoice_id: uuid.UUID) -> EnergyInvoice:
    invoice = await session.scalar(select(EnergyInvoice).where(EnergyInvoice.invoice_id == invoice_id))
    if invoice is None:
        raise NotFoundError("EnergyInvoice", str(invoice_id))
    return invoice


async def load_document(session: AsyncSession, doc_id: uuid.UUID) -> Document:
    doc = await session.scalar(select(Document).where(Document.doc_id == doc_id))
    if doc is None:
        raise NotFoundError("Document", str(doc_id))
    return doc


async def update_invoice(
    session: AsyncSession,
    invoice_id: uuid.UUID,
    changes: InvoiceChanges,
    actor: Actor,
) -> EnergyInvoice:
    """Apply reviewer edits. The document status is not touched."""
    require(actor, Capability.EDIT_INVOICE)
    invoice = await load_invoice(session, invoice_id)

    updates = changes.model_dump(exclude_unset=True)
    if "reading_type" in updates:
        # An explicit null means "unknown", the column is not nullable
        reading_type = updates["reading_type"] or ReadingType.UNKNOWN
        updates["reading_type"] = ReadingType(reading_type).value

    for name, value in updates.items():
        setattr(invoice, name, value)
    invoice.updated_at = utcnow()
    await session.flush()

    await record_action(
        session, AuditAction.EDIT, EntityType.ENERGY_INVOICE, str(invoice_id),
        user_id=actor.user_id, details={"fields": sorted(updates)},
    )
    logger.info("invoice_updated", invoice_id=str(invoice_id), fields=sorted(updates))
    return invoice


async def approve_invoice(
    session: AsyncSession,
    invoice_id: uuid.UUID,
    actor: Actor,
) -> EnergyInvoice:
    """
    Approve an invoice: confidences forced to 100, review stamps set, and the
    document moved to `approved` with overall confidence 100.

    Both writes happen in the caller's transaction; the document status is
    checked before the invoice is touched so a rejected approval leaves no
    pending change behind.
    """
    require(actor, Capability.APPROVE)
    invoice = await load_invoice(session, invoice_id)
    doc = await load_document(session, invoice.doc_id)

    if DocumentStatus(doc.status) not in APPROVABLE_STATUSES:
        raise InvalidTransitionError(str(doc.doc_id), doc.status, DocumentStatus.APPROVED.value)

    now = utcnow()
    invoice.confidence_invoice_date = FULL_CONFIDENCE
    invoice.confidence_reading_type = FULL_CONFIDENCE
    invoice.confidence_kwh = FULL_CONFIDENCE
    invoice.reviewed_by = actor.user_id
    invoice.reviewed_at = now
    invoice.updated_at = now
    await session.flush()

    await transition(
        session,
        invoice.doc_id,
        DocumentStatus.APPROVED,
        allowed_from=APPROVABLE_STATUSES,
        overall_confidence=FULL_CONFIDENCE,
    )

    await record_action(
        session, AuditAction.APPROVE, EntityType.ENERGY_INVOICE, str(invoice_id),
        user_id=actor.user_id, details={"doc_id": str(invoice.doc_id)},
    )
    invoices_approved_total.inc()
    logger.info("invoice_approved", invoice_id=str(invoice_id), doc_id=str(invoice.doc_id))
    return invoice


async def delete_invoice(
    session: AsyncSession,
    store: ArtifactStore,
    invoice_id: uuid.UUID,
    actor: Actor,
) -> CleanupReport:
    """Delete an invoice together with its document and stored file."""
    require(actor, Capability.DELETE)
    invoice = await load_invoice(session, invoice_id)
    doc = await load_document(session, invoice.doc_id)
    return await _cleanup(session, store, doc, invoice.invoice_id, actor)


async def delete_document(
    session: AsyncSession,
    store: ArtifactStore,
    doc_id: uuid.UUID,
    actor: Actor,
) -> CleanupReport:
    """Delete a document (and its invoice, if it has one) plus its stored file."""
    require(actor, Capability.DELETE)
    doc = await load_document(session, doc_id)
    invoice_id = await session.scalar(
        select(EnergyInvoice.invoice_id).where(EnergyInvoice.doc_id == doc_id)
    )
    return await _cleanup(session, store, doc, invoice_id, actor)


async def _cleanup(
    session: AsyncSession,
    store: ArtifactStore,
    doc: Document,
    invoice_id: Optional[uuid.UUID],
    actor: Actor,
) -> CleanupReport:
    doc_id = doc.doc_id
    file_uri = doc.file_uri
    report = CleanupReport(doc_id=str(doc_id), invoice_id=str(invoice_id) if invoice_id else None)

    try:
        # ── Step 1: invoice row ──
        step = STEP_DELETE_INVOICE
        if invoice_id is not None:
            await session.execute(delete(EnergyInvoice).where(EnergyInvoice.invoice_id == invoice_id))
            await session.commit()
        report.completed_steps.append(step)

        # ── Step 2: stored file ──
        step = STEP_DELETE_FILE
        if file_uri:
            try:
                existed = store.delete(file_uri)
            except UnresolvableReferenceError:
                logger.warning("stored_file_unresolvable", doc_id=str(doc_id), file_uri=file_uri)
            else:
                if not existed:
                    logger.warning("stored_file_already_missing", doc_id=str(doc_id), file_uri=file_uri)
        report.completed_steps.append(step)

        # ── Step 3: document row ──
        step = STEP_DELETE_DOCUMENT
        await session.execute(delete(Document).where(Document.doc_id == doc_id))
        await session.commit()
        report.completed_steps.append(step)
    except (SQLAlchemyError, OSError) as e:
        await session.rollback()
        report.failed_step = step
        report.error = f"{type(e).__name__}: {e}"
        logger.error(
            "cleanup_step_failed",
            doc_id=str(doc_id),
            failed_step=step,
            completed_steps=report.completed_steps,
            error=report.error,
        )

    await record_action(
        session, AuditAction.DELETE, EntityType.DOCUMENT, str(doc_id),
        user_id=actor.user_id, details=report.model_dump(),
    )
    await session.commit()

    if not report.complete:
        raise PersistenceError(report.failed_step, report.error or "", report.completed_steps)

    documents_deleted_total.inc()
    logger.info("document_deleted", doc_id=str(doc_id), invoice_id=report.invoice_id)
    return report
