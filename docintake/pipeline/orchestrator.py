"""
Extraction pipeline: runs one document through the extraction boundary.

Stages: MARK PROCESSING → DOWNLOAD → EXTRACT → SANITISE → SCORE → PERSIST

The processing flip is committed before anything external happens, so an
interrupted run leaves the document visibly `processing` (retryable by an
operator) rather than silently `uploaded`. Any extraction failure fails the
document; no invoice row is ever written from a failed or partial result.
"""

import time
import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintake.audit.log import record_action
from docintake.engines.base import ExtractionEngine
from docintake.errors import DownloadError, ExtractionError, IntakeError, NotFoundError, PersistenceError
from docintake.models.database import async_session_factory
from docintake.models.enums import AuditAction, DocumentStatus, EntityType
from docintake.models.tables import Document, EnergyInvoice
from docintake.observability.metrics import (
    confidence_scores,
    extractions_completed_total,
    extractions_failed_total,
)
from docintake.pipeline.confidence import ConfidenceResult, score_fields
from docintake.pipeline.lifecycle import transition
from docintake.pipeline.sanitizer import ExtractionFields, sanitize_extraction
from docintake.storage.artifact_store import ArtifactStore

logger = structlog.get_logger(__name__)


class ExtractionPipeline:
    """Extract one document and move it to its post-extraction status."""

    def __init__(
        self,
        engine: Optional[ExtractionEngine] = None,
        store: Optional[ArtifactStore] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        if engine is None:
            from docintake.engines.vision_llm import VisionLLMEngine
            engine = VisionLLMEngine()
        self.engine = engine
        self.store = store or ArtifactStore()
        self.session_factory = session_factory or async_session_factory

    async def process(
        self,
        doc_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        action: AuditAction = AuditAction.EXTRACT,
    ) -> dict:
        """
        Main entry point. Returns a summary dict on success; raises the
        ExtractionError kind (after failing the document) or
        InvalidTransitionError / NotFoundError when extraction cannot start.
        """
        started_at = time.time()
        logger.info("extraction_started", doc_id=str(doc_id), action=action.value)

        async with self.session_factory() as session:
            # ── Stage 1: MARK PROCESSING ──
            await transition(session, doc_id, DocumentStatus.PROCESSING)
            await record_action(
                session, action, EntityType.DOCUMENT, str(doc_id), user_id=actor_id,
            )
            await session.commit()

            try:
                doc = await self._load_document(session, doc_id)

                # ── Stage 2: DOWNLOAD ──
                file_bytes = self._download(doc)

                # ── Stage 3: EXTRACT ──
                raw = await self.engine.extract(file_bytes, doc.file_name, doc.mime_type)

                # ── Stage 4/5: SANITISE + SCORE ──
                fields = sanitize_extraction(raw)
                scored = score_fields(fields.field_confidences)
            except ExtractionError as e:
                await self._fail_document(session, doc_id, e)
                raise
            except Exception as e:
                # Nothing may leave the document stuck in `processing`
                error = ExtractionError(f"Unexpected extraction failure: {type(e).__name__}: {e}")
                await self._fail_document(session, doc_id, error)
                raise error from e

            target = DocumentStatus.NEEDS_REVIEW if scored.needs_review else DocumentStatus.APPROVED

            # ── Stage 6: PERSIST ──
            try:
                invoice = await self._persist(session, doc, fields, scored, target)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                error = PersistenceError("persist_invoice", f"{type(e).__name__}: {e}")
                await self._fail_document(session, doc_id, error)
                raise error from e

        duration_ms = int((time.time() - started_at) * 1000)
        extractions_completed_total.labels(status=target.value).inc()
        if scored.overall_confidence is not None:
            confidence_scores.observe(scored.overall_confidence)

        logger.info(
            "extraction_completed",
            doc_id=str(doc_id),
            supplier=fields.supplier_name,
            overall_confidence=scored.overall_confidence,
            needs_review=scored.needs_review,
            status=target.value,
            duration_ms=duration_ms,
        )

        return {
            "doc_id": str(doc_id),
            "invoice_id": str(invoice.invoice_id),
            "status": target.value,
            "overall_confidence": scored.overall_confidence,
            "needs_review": scored.needs_review,
            "extraction": fields.model_dump(mode="json"),
            "duration_ms": duration_ms,
        }

    # ─── Stage Helpers ────────────────────────────────────────

    async def _load_document(self, session: AsyncSession, doc_id: uuid.UUID) -> Document:
        doc = await session.scalar(select(Document).where(Document.doc_id == doc_id))
        if doc is None:
            raise NotFoundError("Document", str(doc_id))
        return doc

    def _download(self, doc: Document) -> bytes:
        if not doc.file_uri:
            raise DownloadError(f"Document {doc.doc_id} has no stored file")
        try:
            return self.store.load_bytes(doc.file_uri)
        except OSError as e:
            raise DownloadError(f"Failed to download document: {e}") from e

    async def _persist(
        self,
        session: AsyncSession,
        doc: Document,
        fields: ExtractionFields,
        scored: ConfidenceResult,
        target: DocumentStatus,
    ) -> EnergyInvoice:
        # doc_id is unique on invoices: a fresh extraction replaces any earlier one
        await session.execute(delete(EnergyInvoice).where(EnergyInvoice.doc_id == doc.doc_id))

        invoice = EnergyInvoice(
            doc_id=doc.doc_id,
            invoice_date=fields.invoice_date,
            billing_period_start=fields.billing_period_start,
            billing_period_end=fields.billing_period_end,
            reading_type=fields.reading_type.value,
            kwh_used=fields.kwh_used,
            confidence_invoice_date=fields.confidence_invoice_date,
            confidence_reading_type=fields.confidence_reading_type,
            confidence_kwh=fields.confidence_kwh,
        )
        session.add(invoice)
        await session.flush()

        await transition(
            session,
            doc.doc_id,
            target,
            allowed_from={DocumentStatus.PROCESSING},
            overall_confidence=scored.overall_confidence,
            supplier_name=fields.supplier_name,
        )
        return invoice

    async def _fail_document(self, session: AsyncSession, doc_id: uuid.UUID, error: IntakeError) -> None:
        """Move the document to `failed`. Logs, but does not mask, a failure to do so."""
        extractions_failed_total.labels(error_code=error.error_code).inc()
        logger.error(
            "extraction_failed",
            doc_id=str(doc_id),
            error_code=error.error_code,
            error=error.message,
        )
        try:
            await session.rollback()
            await transition(
                session, doc_id, DocumentStatus.FAILED, allowed_from={DocumentStatus.PROCESSING}
            )
            await session.commit()
        except (SQLAlchemyError, IntakeError) as e:
            logger.error("failed_to_mark_failure", doc_id=str(doc_id), error=str(e))


async def run_extraction_job(
    pipeline: ExtractionPipeline,
    doc_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = None,
) -> None:
    """
    Background entry point used after upload. Nobody awaits the result, so
    errors end here: the document already carries the outcome.
    """
    try:
        await pipeline.process(doc_id, actor_id=actor_id)
    except IntakeError as e:
        logger.warning(
            "background_extraction_unsuccessful",
            doc_id=str(doc_id),
            error_code=e.error_code,
            error=e.message,
        )
