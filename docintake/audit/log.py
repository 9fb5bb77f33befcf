"""
Append-only audit trail.
Only inserts and reads live here; there is no update or delete path.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.models.enums import AuditAction, EntityType
from docintake.models.tables import AuditLog

logger = structlog.get_logger(__name__)

MAX_AUDIT_PAGE = 100


async def record_action(
    session: AsyncSession,
    action: AuditAction,
    entity_type: EntityType,
    entity_id: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
    details: Optional[dict] = None,
) -> AuditLog:
    """Append one audit entry in the caller's transaction."""
    entry = AuditLog(
        user_id=user_id,
        action=action.value,
        entity_type=entity_type.value,
        entity_id=entity_id,
        details=details,
    )
    session.add(entry)
    await session.flush()

    logger.info(
        "audit_recorded",
        action=action.value,
        entity_type=entity_type.value,
        entity_id=entity_id,
        user_id=str(user_id) if user_id else None,
    )
    return entry


async def list_recent(
    session: AsyncSession,
    limit: int = MAX_AUDIT_PAGE,
    offset: int = 0,
) -> list[AuditLog]:
    """Newest entries first, never more than MAX_AUDIT_PAGE per fetch."""
    limit = max(1, min(limit, MAX_AUDIT_PAGE))
    result = await session.execute(
        select(AuditLog)
        .order_by(AuditLog.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())
