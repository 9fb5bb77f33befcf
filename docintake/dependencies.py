"""
FastAPI dependency injection.
Provides DB sessions, the document store, the extraction pipeline and the
authenticated actor.
"""

import uuid
from typing import AsyncIterator, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, resolve_role
from docintake.config import settings
from docintake.errors import ValidationError
from docintake.models.database import get_session
from docintake.observability.logging import bind_request_context
from docintake.pipeline.orchestrator import ExtractionPipeline
from docintake.storage.artifact_store import ArtifactStore

security = HTTPBearer(auto_error=False)


# ── Singleton instances ──────────────────────────────────────
_artifact_store: Optional[ArtifactStore] = None
_pipeline: Optional[ExtractionPipeline] = None


def get_artifact_store() -> ArtifactStore:
    """Get or create the document store singleton."""
    global _artifact_store
    if _artifact_store is None:
        _artifact_store = ArtifactStore()
    return _artifact_store


def get_pipeline(store: ArtifactStore = Depends(get_artifact_store)) -> ExtractionPipeline:
    """Get or create the extraction pipeline singleton."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ExtractionPipeline(store=store)
    return _pipeline


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield an async DB session."""
    async for session in get_session():
        yield session


def decode_token(token: str) -> dict:
    """Validate a bearer JWT issued by the auth provider."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.PyJWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_db),
) -> Actor:
    """Authenticated caller with the role resolved from user_roles (viewer if none)."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    payload = decode_token(credentials.credentials)
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token subject is not a user id")

    role = await resolve_role(session, user_id)
    bind_request_context(user_id=str(user_id), role=role.value)
    return Actor(user_id=user_id, role=role, email=payload.get("email"))


def parse_uuid(value: str, name: str = "id") -> uuid.UUID:
    """Path/query identifier to UUID; malformed ids are a 400, not a 404."""
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationError(f"Invalid {name} format")
