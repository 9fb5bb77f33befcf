"""
/api/v1/auth/session endpoints.
Sign-in and sign-out happen at the auth provider; the client reports them
here so they land in the audit log.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, capabilities_for
from docintake.audit.log import record_action
from docintake.dependencies import get_current_actor, get_db
from docintake.models.enums import AuditAction, EntityType
from docintake.schemas.users import CurrentUser

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/session", response_model=CurrentUser)
async def open_session(
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    await record_action(
        session, AuditAction.LOGIN, EntityType.SESSION, str(actor.user_id),
        user_id=actor.user_id, details={"email": actor.email},
    )
    logger.info("user_signed_in", user_id=str(actor.user_id), role=actor.role.value)
    return CurrentUser(
        user_id=str(actor.user_id),
        email=actor.email,
        role=actor.role,
        capabilities=sorted(capabilities_for(actor.role), key=lambda c: c.value),
    )


@router.delete("/session")
async def close_session(
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    await record_action(
        session, AuditAction.LOGOUT, EntityType.SESSION, str(actor.user_id),
        user_id=actor.user_id,
    )
    logger.info("user_signed_out", user_id=str(actor.user_id))
    return {"status": "signed_out"}
