"""
/api/v1/audit-log endpoint (read only).
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, require
from docintake.audit.log import MAX_AUDIT_PAGE, list_recent
from docintake.dependencies import get_current_actor, get_db
from docintake.schemas.users import AuditEntry, AuditLogResponse

router = APIRouter(prefix="/api/v1/audit-log", tags=["audit"])


@router.get("", response_model=AuditLogResponse)
async def get_audit_log(
    limit: int = Query(MAX_AUDIT_PAGE, ge=1, le=MAX_AUDIT_PAGE),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Most recent audit entries first."""
    require(actor, Capability.VIEW_AUDIT_LOG)
    entries = await list_recent(session, limit=limit, offset=offset)
    return AuditLogResponse(
        entries=[
            AuditEntry(
                audit_id=str(e.audit_id),
                user_id=str(e.user_id) if e.user_id else None,
                action=e.action,
                entity_type=e.entity_type,
                entity_id=e.entity_id,
                details=e.details,
                created_at=e.created_at,
            )
            for e in entries
        ],
        limit=limit,
        offset=offset,
    )
