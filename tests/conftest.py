"""
Shared test fixtures.
"""

import os
import tempfile
import uuid

# Settings are read at import time; point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ARTIFACT_ROOT", tempfile.mkdtemp(prefix="docintake-tests-"))
os.environ.setdefault("JWT_SECRET", "test-signing-secret-0123456789abcdef")
os.environ.setdefault("EXTRACTION_API_KEY", "test-key")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from docintake.access.policy import Actor, Role
from docintake.models.database import Base
from docintake.models.enums import DocumentStatus, DocumentType
from docintake.models.tables import Document, EnergyInvoice
from docintake.storage.artifact_store import ArtifactStore

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << /Root 1 0 R >>\n%%EOF\n"


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(
        root=str(tmp_path / "documents"),
        signing_key="test-signing-secret-0123456789abcdef",
        public_base_url="http://testserver",
    )


@pytest.fixture
def admin():
    return Actor(user_id=uuid.uuid4(), role=Role.ADMIN, email="admin@example.com")


@pytest.fixture
def reviewer():
    return Actor(user_id=uuid.uuid4(), role=Role.REVIEWER, email="reviewer@example.com")


@pytest.fixture
def viewer():
    return Actor(user_id=uuid.uuid4(), role=Role.VIEWER, email="viewer@example.com")


@pytest.fixture
def extraction_payload():
    """A clean, high-confidence model response."""
    return {
        "invoice_date": "2024-03-15",
        "billing_period_start": "2024-02-01",
        "billing_period_end": "2024-02-29",
        "reading_type": "Actual",
        "kwh_used": 1234.5,
        "supplier_name": "British Gas",
        "confidence_invoice_date": 95,
        "confidence_reading_type": 92,
        "confidence_kwh": 90,
    }


@pytest.fixture
def seed_document(session_factory, store):
    """Create a document row (and its stored file) in its own committed session."""

    async def _seed(
        status: DocumentStatus = DocumentStatus.UPLOADED,
        document_type: DocumentType = DocumentType.ENERGY,
        with_file: bool = True,
        **overrides,
    ) -> Document:
        file_uri = None
        if with_file:
            file_uri = store.save_bytes(f"{uuid.uuid4()}.pdf", PDF_BYTES)
        doc = Document(
            file_name=overrides.pop("file_name", "invoice.pdf"),
            file_uri=overrides.pop("file_uri", file_uri),
            file_size_bytes=len(PDF_BYTES),
            mime_type="application/pdf",
            document_type=document_type.value,
            status=status.value,
            **overrides,
        )
        async with session_factory() as s:
            s.add(doc)
            await s.commit()
        return doc

    return _seed


@pytest.fixture
def seed_invoice(session_factory):
    """Create an invoice row for an existing document."""

    async def _seed(doc: Document, **overrides) -> EnergyInvoice:
        values = {
            "reading_type": "Estimated",
            "kwh_used": 812,
            "confidence_invoice_date": 70,
            "confidence_reading_type": 60,
            "confidence_kwh": 80,
        }
        values.update(overrides)
        invoice = EnergyInvoice(doc_id=doc.doc_id, **values)
        async with session_factory() as s:
            s.add(invoice)
            await s.commit()
        return invoice

    return _seed


@pytest.fixture
def fetch(session_factory):
    """Load a row through a fresh session so no identity-map state leaks in."""

    async def _fetch(model, ident):
        async with session_factory() as s:
            return await s.get(model, ident)

    return _fetch
