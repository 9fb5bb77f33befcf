"""
SQLAlchemy ORM models.
Column types are portable (PostgreSQL in production, SQLite in tests);
enum-valued columns store the `.value` of the enums in models/enums.py.
"""

import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docintake.models.database import Base
from docintake.models.enums import DocumentStatus, DocumentType, ReadingType, TransportMode, UKZone

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ────────────────────────────────────────────────────────────
# DOCUMENTS
# ────────────────────────────────────────────────────────────
class Document(Base):
    __tablename__ = "documents"

    doc_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    # Bare storage path for new rows; legacy rows may hold a full URL
    file_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[str] = mapped_column(Text, nullable=False, default="application/pdf")
    document_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentType.UNKNOWN.value,
        server_default=DocumentType.UNKNOWN.value,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.UPLOADED.value,
        server_default=DocumentStatus.UPLOADED.value,
    )
    overall_confidence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    # Deletion is an explicit multi-step cleanup; never let the ORM load children for it
    invoice = relationship("EnergyInvoice", back_populates="document", uselist=False, passive_deletes=True)

    __table_args__ = (
        Index("idx_documents_status", "status"),
        Index("idx_documents_uploaded", "uploaded_at"),
    )


# ────────────────────────────────────────────────────────────
# ENERGY INVOICES
# ────────────────────────────────────────────────────────────
class EnergyInvoice(Base):
    __tablename__ = "energy_invoices"

    invoice_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    doc_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.doc_id"), nullable=False, unique=True
    )
    invoice_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    billing_period_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    billing_period_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    reading_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReadingType.UNKNOWN.value,
        server_default=ReadingType.UNKNOWN.value,
    )
    kwh_used: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    confidence_invoice_date: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    confidence_reading_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    confidence_kwh: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    document = relationship("Document", back_populates="invoice")

    @property
    def field_confidences(self) -> list[Optional[int]]:
        return [self.confidence_invoice_date, self.confidence_reading_type, self.confidence_kwh]

    __table_args__ = (
        Index("idx_invoices_created", "created_at"),
    )


# ────────────────────────────────────────────────────────────
# TRANSPORT RECORDS (read-only reference data)
# ────────────────────────────────────────────────────────────
class TransportRecord(Base):
    __tablename__ = "transport_records"

    record_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    receipt_created_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    supplier_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ship_country: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ship_area: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    destination_postcode: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    total_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    transport_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransportMode.UNKNOWN.value
    )
    uk_zone: Mapped[str] = mapped_column(String(20), nullable=False, default=UKZone.UNKNOWN.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


# ────────────────────────────────────────────────────────────
# USERS
# ────────────────────────────────────────────────────────────
class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )


class UserRole(Base):
    __tablename__ = "user_roles"

    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)


# ────────────────────────────────────────────────────────────
# AUDIT LOG (append-only)
# ────────────────────────────────────────────────────────────
class AuditLog(Base):
    __tablename__ = "audit_log"

    audit_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_audit_created", "created_at"),
    )
