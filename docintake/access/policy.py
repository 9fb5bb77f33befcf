"""
Role-based access control.

Each role maps to an explicit capability set; callers check capabilities,
never role names. A user without a role assignment is a viewer.
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.errors import PermissionDeniedError
from docintake.models.tables import UserRole


class Role(str, Enum):
    ADMIN = "admin"
    REVIEWER = "reviewer"
    VIEWER = "viewer"


class Capability(str, Enum):
    READ = "read"
    UPLOAD = "upload"
    EDIT_INVOICE = "edit_invoice"
    APPROVE = "approve"
    RETRY_EXTRACTION = "retry_extraction"
    DELETE = "delete"
    MANAGE_USERS = "manage_users"
    VIEW_AUDIT_LOG = "view_audit_log"


DEFAULT_ROLE = Role.VIEWER

_VIEWER = frozenset({Capability.READ})
_REVIEWER = _VIEWER | {
    Capability.UPLOAD,
    Capability.EDIT_INVOICE,
    Capability.APPROVE,
    Capability.RETRY_EXTRACTION,
}
_ADMIN = _REVIEWER | {
    Capability.DELETE,
    Capability.MANAGE_USERS,
    Capability.VIEW_AUDIT_LOG,
}


def capabilities_for(role: Role) -> frozenset[Capability]:
    match role:
        case Role.ADMIN:
            return _ADMIN
        case Role.REVIEWER:
            return _REVIEWER
        case Role.VIEWER:
            return _VIEWER
    raise ValueError(f"Unhandled role: {role!r}")


class Actor(BaseModel):
    """The authenticated caller of an operation."""
    user_id: uuid.UUID
    role: Role = DEFAULT_ROLE
    email: Optional[str] = None

    def can(self, capability: Capability) -> bool:
        return capability in capabilities_for(self.role)


def require(actor: Actor, capability: Capability) -> None:
    """Raise PermissionDeniedError unless the actor holds `capability`."""
    if not actor.can(capability):
        raise PermissionDeniedError(actor.role.value, capability.value)


def parse_role(value: Optional[str]) -> Role:
    """Stored role string to Role; unknown or missing values fall back to viewer."""
    try:
        return Role(value) if value else DEFAULT_ROLE
    except ValueError:
        return DEFAULT_ROLE


async def resolve_role(session: AsyncSession, user_id: uuid.UUID) -> Role:
    """The user's single role assignment, or viewer when there is none."""
    stored = await session.scalar(select(UserRole.role).where(UserRole.user_id == user_id))
    return parse_role(stored)
