"""
/api/v1/users endpoints.
User profiles come from the auth provider; this service only owns roles.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, capabilities_for, parse_role, require
from docintake.audit.log import record_action
from docintake.dependencies import get_current_actor, get_db, parse_uuid
from docintake.errors import NotFoundError
from docintake.models.enums import AuditAction, EntityType
from docintake.models.tables import Profile, UserRole
from docintake.schemas.users import CurrentUser, RoleUpdateRequest, UserWithRole

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/me", response_model=CurrentUser)
async def current_user(actor: Actor = Depends(get_current_actor)):
    """The caller's identity, role and capabilities."""
    return CurrentUser(
        user_id=str(actor.user_id),
        email=actor.email,
        role=actor.role,
        capabilities=sorted(capabilities_for(actor.role), key=lambda c: c.value),
    )


@router.get("", response_model=list[UserWithRole])
async def list_users(
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """All profiles with their role; users without an assignment are viewers."""
    require(actor, Capability.MANAGE_USERS)
    result = await session.execute(
        select(Profile, UserRole.role)
        .outerjoin(UserRole, UserRole.user_id == Profile.user_id)
        .order_by(Profile.created_at.desc())
    )
    return [
        UserWithRole(
            user_id=str(profile.user_id),
            email=profile.email,
            full_name=profile.full_name,
            role=parse_role(role),
            created_at=profile.created_at,
        )
        for profile, role in result.all()
    ]


@router.put("/{user_id}/role", response_model=UserWithRole)
async def set_user_role(
    user_id: str,
    body: RoleUpdateRequest,
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Assign a user's single role, replacing any previous one."""
    require(actor, Capability.MANAGE_USERS)
    user_uuid = parse_uuid(user_id, "user_id")

    profile = await session.scalar(select(Profile).where(Profile.user_id == user_uuid))
    if profile is None:
        raise NotFoundError("User", user_id)

    assignment = await session.scalar(select(UserRole).where(UserRole.user_id == user_uuid))
    previous = parse_role(assignment.role if assignment else None)
    if assignment is None:
        session.add(UserRole(user_id=user_uuid, role=body.role.value))
    else:
        assignment.role = body.role.value
    await session.flush()

    await record_action(
        session, AuditAction.ROLE_CHANGE, EntityType.USER, user_id,
        user_id=actor.user_id,
        details={"previous_role": previous.value, "new_role": body.role.value},
    )
    logger.info("user_role_changed", user_id=user_id, previous_role=previous.value, new_role=body.role.value)

    return UserWithRole(
        user_id=user_id,
        email=profile.email,
        full_name=profile.full_name,
        role=body.role,
        created_at=profile.created_at,
    )
