"""
Document store: uploaded files on the local filesystem (volume mount),
laid out like an object-store bucket, with signed time-limited retrieval URLs.
"""

import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import jwt
import structlog

from docintake.config import settings
from docintake.storage.paths import ensure_parent_dirs, is_safe_path, normalize_storage_path

logger = structlog.get_logger(__name__)

SIGNED_URL_AUDIENCE = "storage"


class InvalidSignatureError(Exception):
    """A signed URL token is malformed, tampered with, or expired."""


class UnresolvableReferenceError(FileNotFoundError):
    """A stored reference that does not map to any path in the bucket."""


class ArtifactStore:
    """
    Save, load and sign document files.
    Every public method accepts either a bare path or a legacy full URL.
    """

    def __init__(
        self,
        root: Optional[str] = None,
        signing_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self.root = Path(root or settings.ARTIFACT_ROOT)
        self.root.mkdir(parents=True, exist_ok=True)
        self.signing_key = signing_key or settings.JWT_SECRET
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")

    def _resolve(self, reference: str) -> tuple[str, Path]:
        relative_path = normalize_storage_path(reference)
        if relative_path is None or not is_safe_path(relative_path):
            raise UnresolvableReferenceError(f"Unresolvable storage reference: {reference}")
        return relative_path, self.root / relative_path

    def save_bytes(self, relative_path: str, data: bytes) -> str:
        """Save raw bytes. Returns the relative path."""
        if not is_safe_path(relative_path):
            raise ValueError(f"Unsafe storage path: {relative_path}")
        full_path = ensure_parent_dirs(str(self.root), relative_path)
        full_path.write_bytes(data)
        logger.info("file_saved", path=relative_path, size_bytes=len(data))
        return relative_path

    def load_bytes(self, reference: str) -> bytes:
        relative_path, full_path = self._resolve(reference)
        if not full_path.is_file():
            raise FileNotFoundError(f"File not found: {relative_path}")
        return full_path.read_bytes()

    def exists(self, reference: str) -> bool:
        try:
            _, full_path = self._resolve(reference)
        except FileNotFoundError:
            return False
        return full_path.is_file()

    def delete(self, reference: str) -> bool:
        """Delete a file. Returns True if it existed."""
        relative_path, full_path = self._resolve(reference)
        if full_path.exists():
            full_path.unlink()
            logger.info("file_deleted", path=relative_path)
            return True
        return False

    def full_path(self, reference: str) -> Path:
        return self._resolve(reference)[1]

    # ── Signed URLs ──────────────────────────────────────────

    def sign(self, reference: str, ttl_seconds: Optional[int] = None) -> str:
        """Signed token granting read access to one file until it expires."""
        relative_path, _ = self._resolve(reference)
        ttl = ttl_seconds if ttl_seconds is not None else settings.SIGNED_URL_TTL_SECONDS
        payload = {
            "path": relative_path,
            "aud": SIGNED_URL_AUDIENCE,
            "exp": int(time.time()) + ttl,
        }
        return jwt.encode(payload, self.signing_key, algorithm="HS256")

    def signed_url(self, reference: str, ttl_seconds: Optional[int] = None) -> str:
        relative_path, _ = self._resolve(reference)
        token = self.sign(relative_path, ttl_seconds)
        return f"{self.public_base_url}/api/v1/files/{quote(relative_path)}?token={token}"

    def verify(self, relative_path: str, token: str) -> str:
        """Check a signed token against the requested path. Returns the path."""
        try:
            payload = jwt.decode(
                token, self.signing_key, algorithms=["HS256"], audience=SIGNED_URL_AUDIENCE
            )
        except jwt.PyJWTError as e:
            raise InvalidSignatureError(str(e)) from e
        if payload.get("path") != relative_path:
            raise InvalidSignatureError("Token does not match requested path")
        return relative_path
