"""
Stub extraction engine for testing pipeline plumbing.
Returns a fixed payload (or raises a fixed error) without any network call.
"""

from typing import Optional

from docintake.engines.base import ExtractionEngine


class StubEngine(ExtractionEngine):
    """Fake adapter returning a canned payload."""

    def __init__(self, payload: Optional[dict] = None, error: Optional[Exception] = None):
        self.payload = payload or {}
        self.error = error
        self.calls: list[str] = []

    @property
    def engine_name(self) -> str:
        return "stub"

    @property
    def engine_version(self) -> str:
        return "0.1.0"

    async def extract(self, file_bytes: bytes, file_name: str, mime_type: str) -> dict:
        self.calls.append(file_name)
        if self.error is not None:
            raise self.error
        return dict(self.payload)

    async def health_check(self) -> bool:
        """Stub is always healthy."""
        return True
