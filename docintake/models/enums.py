"""
Python enums for persisted string columns.
Values MUST match what the front end and stored rows use.
"""

from enum import Enum


class DocumentType(str, Enum):
    ENERGY = "energy"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class DocumentStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    NEEDS_REVIEW = "needs_review"
    APPROVED = "approved"
    FAILED = "failed"


class ReadingType(str, Enum):
    ACTUAL = "Actual"
    ESTIMATED = "Estimated"
    CUSTOMER_READ = "Customer Read"
    UNKNOWN = "Unknown"


class TransportMode(str, Enum):
    ROAD = "Road"
    AIR = "Air"
    SEA = "Sea"
    UNKNOWN = "Unknown"


class UKZone(str, Enum):
    MAINLAND = "Mainland"
    ISLAND = "Island"
    IRELAND = "Ireland"
    UNKNOWN = "Unknown"


class AuditAction(str, Enum):
    UPLOAD = "upload"
    EXTRACT = "extract"
    RETRY = "retry"
    EDIT = "edit"
    APPROVE = "approve"
    DELETE = "delete"
    ROLE_CHANGE = "role_change"
    LOGIN = "login"
    LOGOUT = "logout"


class EntityType(str, Enum):
    DOCUMENT = "document"
    ENERGY_INVOICE = "energy_invoice"
    USER = "user"
    SESSION = "session"
