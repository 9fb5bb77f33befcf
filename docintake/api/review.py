"""
/api/v1/review endpoints: the reviewer's work queue.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, require
from docintake.dependencies import get_current_actor, get_db
from docintake.review.queue import get_pending_reviews, get_review_queue_stats
from docintake.schemas.documents import DocumentDetail, ReviewQueueResponse

router = APIRouter(prefix="/api/v1/review", tags=["review"])


@router.get("/queue", response_model=ReviewQueueResponse)
async def review_queue(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Documents awaiting review, oldest first, with their invoices."""
    require(actor, Capability.READ)
    docs = await get_pending_reviews(session, limit=limit, offset=offset)
    stats = await get_review_queue_stats(session)
    return ReviewQueueResponse(
        documents=[DocumentDetail.from_document(d) for d in docs],
        stats=stats,
        limit=limit,
        offset=offset,
    )


@router.get("/stats")
async def review_stats(
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Document counts per lifecycle status."""
    require(actor, Capability.READ)
    return await get_review_queue_stats(session)
