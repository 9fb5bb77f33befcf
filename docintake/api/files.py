"""
Signed file retrieval.
The token in the query string is the only credential: it names one path and
expires after SIGNED_URL_TTL_SECONDS.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from docintake.dependencies import get_artifact_store
from docintake.storage.artifact_store import ArtifactStore, InvalidSignatureError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["files"])


@router.get("/{path:path}")
async def get_file(
    path: str,
    token: str = Query(...),
    store: ArtifactStore = Depends(get_artifact_store),
):
    try:
        store.verify(path, token)
    except InvalidSignatureError as e:
        logger.warning("signed_url_rejected", path=path, error=str(e))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")

    try:
        full_path = store.full_path(path)
    except FileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if not full_path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    return FileResponse(full_path, media_type="application/pdf", filename=full_path.name)
