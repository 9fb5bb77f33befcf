"""
Review queue and dashboard statistics.
The queue is every `needs_review` document, oldest first.
"""

from typing import Optional

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from docintake.models.enums import DocumentStatus
from docintake.models.tables import Document
from docintake.observability.metrics import review_queue_depth
from docintake.pipeline.confidence import overall_confidence


PROCESSED_STATUSES = (DocumentStatus.APPROVED.value, DocumentStatus.NEEDS_REVIEW.value)


class DashboardStats(BaseModel):
    documents_uploaded: int = 0
    documents_processed: int = 0
    documents_needing_review: int = 0
    average_confidence: int = 0


async def get_pending_reviews(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[Document]:
    """Documents awaiting review, with their invoice loaded."""
    result = await session.execute(
        select(Document)
        .options(selectinload(Document.invoice))
        .where(Document.status == DocumentStatus.NEEDS_REVIEW.value)
        .order_by(Document.uploaded_at)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_review_queue_stats(session: AsyncSession) -> dict:
    """Document counts per lifecycle status."""
    result = await session.execute(
        select(Document.status, func.count(Document.doc_id)).group_by(Document.status)
    )
    stats = {row[0]: row[1] for row in result.all()}
    counts = {status.value: stats.get(status.value, 0) for status in DocumentStatus}
    review_queue_depth.set(counts[DocumentStatus.NEEDS_REVIEW.value])
    return {**counts, "total": sum(stats.values())}


async def get_dashboard_stats(session: AsyncSession) -> DashboardStats:
    result = await session.execute(select(Document.status, Document.overall_confidence))
    rows = result.all()

    average: Optional[int] = overall_confidence(conf for _, conf in rows)
    return DashboardStats(
        documents_uploaded=len(rows),
        documents_processed=sum(1 for status, _ in rows if status in PROCESSED_STATUSES),
        documents_needing_review=sum(1 for status, _ in rows if status == DocumentStatus.NEEDS_REVIEW.value),
        average_confidence=average or 0,
    )
