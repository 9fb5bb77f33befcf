"""
Schemas for users, roles and audit entries.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from docintake.access.policy import Capability, Role


class UserWithRole(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    role: Role
    created_at: datetime


class RoleUpdateRequest(BaseModel):
    role: Role


class CurrentUser(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: Role
    capabilities: list[Capability]


class AuditEntry(BaseModel):
    audit_id: str
    user_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[dict] = None
    created_at: datetime


class AuditLogResponse(BaseModel):
    entries: list[AuditEntry]
    limit: int
    offset: int
