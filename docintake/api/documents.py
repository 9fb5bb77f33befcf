"""
/api/v1/documents endpoints.
Handles upload, listing, detail, preview URLs, extraction retry and deletion.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docintake.access.policy import Actor, Capability, require
from docintake.api import invalidation
from docintake.audit.log import record_action
from docintake.config import settings
from docintake.dependencies import (
    get_artifact_store,
    get_current_actor,
    get_db,
    get_pipeline,
    parse_uuid,
)
from docintake.errors import NotFoundError, ValidationError
from docintake.models.enums import AuditAction, DocumentStatus, DocumentType, EntityType
from docintake.models.tables import Document
from docintake.observability.metrics import documents_uploaded_total
from docintake.pipeline.orchestrator import ExtractionPipeline, run_extraction_job
from docintake.review.approval import delete_document as cleanup_document
from docintake.schemas.documents import (
    DocumentDetail,
    DocumentListResponse,
    DocumentSummary,
    DocumentUploadResponse,
    ExtractionResponse,
    PreviewUrlResponse,
)
from docintake.schemas.invoices import CleanupResponse
from docintake.storage.artifact_store import ArtifactStore
from docintake.storage.paths import doc_hash, document_path

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/documents", tags=["documents"])


@router.post("", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    document_type: DocumentType = Form(DocumentType.ENERGY),
    session: AsyncSession = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
    pipeline: ExtractionPipeline = Depends(get_pipeline),
    actor: Actor = Depends(get_current_actor),
):
    """Upload a PDF. Energy invoices are extracted in the background."""
    require(actor, Capability.UPLOAD)

    # Validate file type
    if file.content_type not in settings.ALLOWED_MIME_TYPES.split(","):
        raise ValidationError(
            f"Unsupported file type: {file.content_type}. Allowed: {settings.ALLOWED_MIME_TYPES}",
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        )

    file_bytes = await file.read()
    file_size = len(file_bytes)

    # Validate size
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if file_size > max_bytes:
        raise ValidationError(
            f"File too large: {file_size} bytes. Max: {max_bytes} bytes",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    # Validate not empty
    if file_size == 0:
        raise ValidationError("Empty file uploaded")

    file_name = file.filename or "document.pdf"
    storage_path = store.save_bytes(document_path(file_name), file_bytes)

    doc = Document(
        file_name=file_name,
        file_uri=storage_path,
        file_size_bytes=file_size,
        mime_type=file.content_type or "application/pdf",
        document_type=document_type.value,
        status=DocumentStatus.UPLOADED.value,
        uploaded_by=actor.user_id,
    )
    session.add(doc)
    await session.flush()

    await record_action(
        session, AuditAction.UPLOAD, EntityType.DOCUMENT, str(doc.doc_id),
        user_id=actor.user_id,
        details={"file_name": file_name, "document_type": document_type.value},
    )
    # The background extraction reads the row through its own session
    await session.commit()

    documents_uploaded_total.labels(document_type=document_type.value).inc()
    logger.info(
        "document_uploaded",
        doc_id=str(doc.doc_id),
        file_name=file_name,
        file_size_bytes=file_size,
        doc_hash=doc_hash(file_bytes),
        document_type=document_type.value,
    )

    scheduled = document_type == DocumentType.ENERGY and settings.AUTO_EXTRACT_ENERGY
    if scheduled:
        background_tasks.add_task(run_extraction_job, pipeline, doc.doc_id, actor.user_id)

    return DocumentUploadResponse(
        doc_id=str(doc.doc_id),
        file_name=file_name,
        file_size_bytes=file_size,
        document_type=document_type.value,
        status=DocumentStatus.UPLOADED.value,
        extraction_scheduled=scheduled,
        invalidates=invalidation.for_document(doc.doc_id),
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    document_type: Optional[DocumentType] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """List documents, newest first, with optional filtering."""
    require(actor, Capability.READ)
    query = select(Document)

    if status_filter:
        query = query.where(Document.status == status_filter.value)
    if document_type:
        query = query.where(Document.document_type == document_type.value)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await session.execute(count_query)).scalar() or 0

    query = query.order_by(Document.uploaded_at.desc()).offset(offset).limit(limit)
    result = await session.execute(query)
    docs = result.scalars().all()

    return DocumentListResponse(
        documents=[DocumentSummary.from_document(d) for d in docs],
        total=total,
        limit=limit,
        offset=offset,
    )


async def _get_document(session: AsyncSession, doc_id: str) -> Document:
    doc_uuid = parse_uuid(doc_id, "doc_id")
    result = await session.execute(
        select(Document)
        .options(selectinload(Document.invoice))
        .where(Document.doc_id == doc_uuid)
    )
    doc = result.scalar_one_or_none()
    if doc is None:
        raise NotFoundError("Document", doc_id)
    return doc


@router.get("/{doc_id}", response_model=DocumentDetail)
async def get_document(
    doc_id: str,
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Document detail including its extracted invoice, if any."""
    require(actor, Capability.READ)
    doc = await _get_document(session, doc_id)
    return DocumentDetail.from_document(doc)


@router.get("/{doc_id}/preview-url", response_model=PreviewUrlResponse)
async def get_preview_url(
    doc_id: str,
    session: AsyncSession = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
    actor: Actor = Depends(get_current_actor),
):
    """Time-limited signed URL for viewing the stored PDF."""
    require(actor, Capability.READ)
    doc = await _get_document(session, doc_id)

    if not doc.file_uri or not store.exists(doc.file_uri):
        raise NotFoundError("StoredFile", doc_id)

    ttl = settings.SIGNED_URL_TTL_SECONDS
    return PreviewUrlResponse(
        doc_id=doc_id,
        signed_url=store.signed_url(doc.file_uri, ttl),
        expires_in=ttl,
    )


@router.post("/{doc_id}/extract", response_model=ExtractionResponse)
async def extract_document(
    doc_id: str,
    session: AsyncSession = Depends(get_db),
    pipeline: ExtractionPipeline = Depends(get_pipeline),
    actor: Actor = Depends(get_current_actor),
):
    """
    Run extraction now and wait for the outcome.
    Allowed from `uploaded` and `failed` only; anything else is a 409.
    """
    require(actor, Capability.RETRY_EXTRACTION)
    doc = await _get_document(session, doc_id)

    if doc.document_type != DocumentType.ENERGY.value:
        raise ValidationError(f"Extraction is only available for energy invoices, not '{doc.document_type}'")

    action = AuditAction.RETRY if doc.status == DocumentStatus.FAILED.value else AuditAction.EXTRACT
    outcome = await pipeline.process(doc.doc_id, actor_id=actor.user_id, action=action)

    return ExtractionResponse(
        **outcome,
        invalidates=invalidation.for_document(doc.doc_id, outcome["invoice_id"]),
    )


@router.delete("/{doc_id}", response_model=CleanupResponse)
async def delete_document(
    doc_id: str,
    session: AsyncSession = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
    actor: Actor = Depends(get_current_actor),
):
    """Delete a document, its invoice and its stored file."""
    report = await cleanup_document(session, store, parse_uuid(doc_id, "doc_id"), actor)
    return CleanupResponse(
        doc_id=report.doc_id,
        invoice_id=report.invoice_id,
        completed_steps=report.completed_steps,
        invalidates=invalidation.for_document(report.doc_id, report.invoice_id),
    )
