"""
Abstract base class for extraction engines.
An engine turns a document file into a raw field payload (dict) or raises
an ExtractionError subclass. Sanitisation happens downstream.
"""

from abc import ABC, abstractmethod


class ExtractionEngine(ABC):
    """
    Every engine must:
    1. Accept the file bytes plus name and MIME type
    2. Return the raw extraction payload as a dict
    3. Report its name and version
    4. Raise UpstreamError / RateLimitedError / QuotaExhaustedError / ParseError
       on failure, never return partial or fabricated data
    """

    @property
    @abstractmethod
    def engine_name(self) -> str:
        ...

    @property
    @abstractmethod
    def engine_version(self) -> str:
        """Model identifier or API version string."""
        ...

    @abstractmethod
    async def extract(self, file_bytes: bytes, file_name: str, mime_type: str) -> dict:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify engine is configured and reachable."""
        ...
