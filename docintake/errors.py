"""
Error taxonomy for the intake service.

Every domain failure raises a subclass of IntakeError. The API layer maps
them to HTTP responses via `status_code` and `error_code`; the extraction
pipeline converts ExtractionError subclasses into the `failed` transition.
"""

from typing import Optional


class IntakeError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_code: str = "ERR_INTERNAL"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(IntakeError):
    """Bad input, e.g. a non-PDF upload."""

    status_code = 400
    error_code = "ERR_VALIDATION"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(IntakeError):
    status_code = 404
    error_code = "ERR_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class PermissionDeniedError(IntakeError):
    """The actor's role lacks the capability for the requested operation."""

    status_code = 403
    error_code = "ERR_PERMISSION_DENIED"

    def __init__(self, role: str, capability: str):
        self.role = role
        self.capability = capability
        super().__init__(f"Role '{role}' lacks capability '{capability}'")


class InvalidTransitionError(IntakeError):
    """A lifecycle transition not allowed from the document's current status."""

    status_code = 409
    error_code = "ERR_INVALID_TRANSITION"

    def __init__(self, doc_id: str, current: Optional[str], target: str):
        self.doc_id = doc_id
        self.current = current
        self.target = target
        super().__init__(f"Document {doc_id}: cannot move from '{current}' to '{target}'")


class PersistenceError(IntakeError):
    """A write to the backing store failed. `step` names the failing step."""

    status_code = 500
    error_code = "ERR_PERSISTENCE"

    def __init__(self, step: str, message: str, completed_steps: Optional[list[str]] = None):
        self.step = step
        self.completed_steps = completed_steps or []
        super().__init__(f"{step}: {message}")


# ── Extraction failures ──────────────────────────────────────

class ExtractionError(IntakeError):
    """Any failure at the extraction boundary. Always fails the document."""

    status_code = 502
    error_code = "ERR_EXTRACTION"


class DownloadError(ExtractionError):
    error_code = "ERR_DOWNLOAD"


class UpstreamError(ExtractionError):
    """The extraction provider answered with a non-2xx status."""

    error_code = "ERR_UPSTREAM"

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(message)


class RateLimitedError(UpstreamError):
    status_code = 429
    error_code = "ERR_RATE_LIMITED"


class QuotaExhaustedError(UpstreamError):
    status_code = 402
    error_code = "ERR_QUOTA_EXHAUSTED"


class ParseError(ExtractionError):
    """The provider response was not a well-formed extraction payload."""

    error_code = "ERR_PARSE"
