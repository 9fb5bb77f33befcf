"""
Storage path generation and normalisation.
All paths are relative to ARTIFACT_ROOT (the `documents` bucket).
"""

import hashlib
import re
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional
from urllib.parse import unquote

# Legacy rows store a full object URL such as
#   https://<host>/storage/v1/object/public/documents/<path>?token=...
DOCUMENTS_SEGMENT = re.compile(r"/documents/(.+?)(?:\?|$)")


def doc_hash(file_bytes: bytes) -> str:
    """SHA-256 hash of file content."""
    return hashlib.sha256(file_bytes).hexdigest()


def document_path(file_name: str) -> str:
    """Generated object key for a new upload: `<uuid>.<ext>`."""
    ext = PurePosixPath(file_name).suffix.lstrip(".").lower() or "pdf"
    return f"{uuid.uuid4()}.{ext}"


def normalize_storage_path(reference: Optional[str]) -> Optional[str]:
    """
    Turn a stored file reference into a bucket-relative path.

    Bare paths are returned unchanged; full URLs yield whatever follows the
    `/documents/` segment, minus any query string. Returns None when no path
    can be recovered.
    """
    if not reference or not reference.strip():
        return None
    reference = reference.strip()

    if not reference.startswith(("http://", "https://")):
        return reference.lstrip("/")

    match = DOCUMENTS_SEGMENT.search(reference)
    if not match:
        return None
    return unquote(match.group(1))


def is_safe_path(relative_path: str) -> bool:
    """Reject absolute paths and parent-directory segments."""
    parts = PurePosixPath(relative_path).parts
    return bool(parts) and not relative_path.startswith("/") and ".." not in parts


def ensure_parent_dirs(artifact_root: str, relative_path: str) -> Path:
    """Create parent directories and return the full absolute path."""
    full_path = Path(artifact_root) / relative_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    return full_path
