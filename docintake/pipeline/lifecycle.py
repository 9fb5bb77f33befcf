"""
Document lifecycle state machine.

    uploaded ──► processing ──► needs_review ──► approved
                    ▲   │  └──────────────────────► approved
                    │   └──► failed
                    └──────── failed (retry)

Every status write is a single conditional UPDATE whose WHERE clause lists
the statuses the target may be reached from, so two racing writers cannot
both succeed on the same row.
"""

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.errors import InvalidTransitionError, NotFoundError
from docintake.models.enums import DocumentStatus
from docintake.models.tables import Document, utcnow

logger = structlog.get_logger(__name__)

S = DocumentStatus

TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    S.UPLOADED: frozenset({S.PROCESSING}),
    S.PROCESSING: frozenset({S.NEEDS_REVIEW, S.APPROVED, S.FAILED}),
    S.NEEDS_REVIEW: frozenset({S.APPROVED}),
    S.APPROVED: frozenset(),
    S.FAILED: frozenset({S.PROCESSING}),
}

# overall_confidence is only meaningful in these states
SCORED_STATUSES = frozenset({S.NEEDS_REVIEW, S.APPROVED})

PROCESSING_STEP_LABELS = {
    S.UPLOADED: "Waiting to process",
    S.PROCESSING: "AI extracting data...",
    S.NEEDS_REVIEW: "Awaiting human review",
    S.APPROVED: "Complete",
    S.FAILED: "Processing failed",
}

RETRYABLE_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if S.PROCESSING in targets)


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    return target in TRANSITIONS[current]


def sources_for(target: DocumentStatus) -> frozenset[DocumentStatus]:
    """All statuses from which `target` is reachable in one step."""
    return frozenset(s for s, targets in TRANSITIONS.items() if target in targets)


def processing_step_label(status: str) -> str:
    try:
        return PROCESSING_STEP_LABELS[DocumentStatus(status)]
    except ValueError:
        return "Unknown"


async def transition(
    session: AsyncSession,
    doc_id: uuid.UUID,
    target: DocumentStatus,
    *,
    allowed_from: Optional[Iterable[DocumentStatus]] = None,
    **values,
) -> None:
    """
    Move a document to `target` with one conditional UPDATE.

    `allowed_from` narrows (or, for idempotent re-approval, widens) the set of
    source statuses; it defaults to every status with an edge into `target`.
    Extra column values are written in the same statement. Raises
    InvalidTransitionError when the row is not in an allowed source status.
    """
    sources = frozenset(allowed_from) if allowed_from is not None else sources_for(target)

    if target not in SCORED_STATUSES:
        values["overall_confidence"] = None

    result = await session.execute(
        update(Document)
        .where(
            Document.doc_id == doc_id,
            Document.status.in_([s.value for s in sources]),
        )
        .values(status=target.value, updated_at=utcnow(), **values)
    )

    if result.rowcount == 0:
        current = await session.scalar(select(Document.status).where(Document.doc_id == doc_id))
        if current is None:
            raise NotFoundError("Document", str(doc_id))
        logger.warning(
            "transition_rejected",
            doc_id=str(doc_id),
            current=current,
            target=target.value,
        )
        raise InvalidTransitionError(str(doc_id), current, target.value)

    logger.info("document_transitioned", doc_id=str(doc_id), target=target.value)
