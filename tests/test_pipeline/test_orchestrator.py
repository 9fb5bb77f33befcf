"""
Tests for the extraction pipeline: status outcomes, fail-closed behaviour,
retries and re-extraction.
"""

import uuid

import httpx
import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select

from docintake.engines.stub_engine import StubEngine
from docintake.engines.vision_llm import VisionLLMEngine
from docintake.errors import (
    DownloadError,
    ExtractionError,
    InvalidTransitionError,
    NotFoundError,
    ParseError,
    RateLimitedError,
)
from docintake.models.enums import AuditAction, DocumentStatus as S
from docintake.models.tables import AuditLog, Document, EnergyInvoice
from docintake.pipeline.confidence import score_fields
from docintake.pipeline.orchestrator import ExtractionPipeline, run_extraction_job


def _payload(date_conf, reading_conf, kwh_conf):
    return {
        "invoice_date": "2024-03-15",
        "billing_period_start": "2024-02-01",
        "billing_period_end": "2024-02-29",
        "reading_type": "Actual",
        "kwh_used": 1234.5,
        "supplier_name": "British Gas",
        "confidence_invoice_date": date_conf,
        "confidence_reading_type": reading_conf,
        "confidence_kwh": kwh_conf,
    }


@pytest.fixture
def make_pipeline(session_factory, store):
    def _make(engine):
        return ExtractionPipeline(engine=engine, store=store, session_factory=session_factory)
    return _make


async def _invoice_count(session_factory, doc_id):
    async with session_factory() as s:
        return await s.scalar(
            select(func.count()).select_from(EnergyInvoice).where(EnergyInvoice.doc_id == doc_id)
        )


class TestExtractionOutcomes:

    async def test_high_confidence_is_auto_approved(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        result = await make_pipeline(StubEngine(_payload(90, 90, 90))).process(doc.doc_id)

        assert result["status"] == "approved"
        assert result["overall_confidence"] == 90
        assert result["needs_review"] is False

        stored = await fetch(Document, doc.doc_id)
        assert stored.status == "approved"
        assert stored.overall_confidence == 90
        assert stored.supplier_name == "British Gas"

    async def test_exactly_85_is_not_review(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        result = await make_pipeline(StubEngine(_payload(70, 90, 95))).process(doc.doc_id)

        assert result["overall_confidence"] == 85
        assert result["status"] == "approved"
        assert (await fetch(Document, doc.doc_id)).status == "approved"

    async def test_low_confidence_needs_review(self, make_pipeline, seed_document, fetch, session_factory):
        doc = await seed_document(S.UPLOADED)
        result = await make_pipeline(StubEngine(_payload(70, 70, 70))).process(doc.doc_id)

        assert result["status"] == "needs_review"
        stored = await fetch(Document, doc.doc_id)
        assert stored.status == "needs_review"
        assert stored.overall_confidence == 70

        invoice = await fetch(EnergyInvoice, uuid.UUID(result["invoice_id"]))
        assert invoice.doc_id == doc.doc_id
        assert invoice.reading_type == "Actual"
        assert invoice.reviewed_by is None
        assert invoice.reviewed_at is None

    async def test_sanitised_values_are_persisted(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        raw = {"reading_type": "smart", "kwh_used": -4, "confidence_kwh": 140}
        result = await make_pipeline(StubEngine(raw)).process(doc.doc_id)

        invoice = await fetch(EnergyInvoice, uuid.UUID(result["invoice_id"]))
        assert invoice.reading_type == "Unknown"
        assert invoice.kwh_used is None
        assert invoice.confidence_kwh == 100
        assert invoice.confidence_invoice_date == 50
        assert (await fetch(Document, doc.doc_id)).supplier_name == "Unknown Supplier"

    async def test_missing_overall_confidence_is_not_observed(self, make_pipeline, seed_document, monkeypatch):
        import docintake.pipeline.orchestrator as orchestrator

        monkeypatch.setattr(orchestrator, "score_fields", lambda field_scores: score_fields({}))
        doc = await seed_document(S.UPLOADED)
        before = REGISTRY.get_sample_value("confidence_scores_count") or 0

        result = await make_pipeline(StubEngine(_payload(90, 90, 90))).process(doc.doc_id)

        assert result["overall_confidence"] is None
        assert (REGISTRY.get_sample_value("confidence_scores_count") or 0) == before

    async def test_engine_receives_stored_file(self, make_pipeline, seed_document):
        doc = await seed_document(S.UPLOADED, file_name="bill.pdf")
        engine = StubEngine(_payload(90, 90, 90))
        await make_pipeline(engine).process(doc.doc_id)
        assert engine.calls == ["bill.pdf"]


class TestFailClosed:

    async def test_rate_limit_fails_document_without_invoice(self, make_pipeline, seed_document, fetch, session_factory):
        doc = await seed_document(S.UPLOADED)
        engine = StubEngine(error=RateLimitedError("Rate limit exceeded", 429))

        with pytest.raises(RateLimitedError):
            await make_pipeline(engine).process(doc.doc_id)

        stored = await fetch(Document, doc.doc_id)
        assert stored.status == "failed"
        assert stored.overall_confidence is None
        assert await _invoice_count(session_factory, doc.doc_id) == 0

    async def test_http_429_from_gateway(self, make_pipeline, seed_document, fetch, session_factory):
        doc = await seed_document(S.UPLOADED)
        transport = httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "slow down"}))
        engine = VisionLLMEngine(api_url="https://gateway.test/v1/chat/completions", api_key="k", transport=transport)

        with pytest.raises(RateLimitedError):
            await make_pipeline(engine).process(doc.doc_id)

        assert (await fetch(Document, doc.doc_id)).status == "failed"
        assert await _invoice_count(session_factory, doc.doc_id) == 0

    async def test_unparseable_response_fails_document(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        with pytest.raises(ParseError):
            await make_pipeline(StubEngine(error=ParseError("bad json"))).process(doc.doc_id)
        assert (await fetch(Document, doc.doc_id)).status == "failed"

    async def test_missing_stored_file_is_download_error(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED, file_uri="gone.pdf", with_file=False)
        engine = StubEngine(_payload(90, 90, 90))

        with pytest.raises(DownloadError):
            await make_pipeline(engine).process(doc.doc_id)

        assert engine.calls == []
        assert (await fetch(Document, doc.doc_id)).status == "failed"

    async def test_document_without_file_reference(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED, with_file=False)
        with pytest.raises(DownloadError):
            await make_pipeline(StubEngine(_payload(90, 90, 90))).process(doc.doc_id)
        assert (await fetch(Document, doc.doc_id)).status == "failed"

    async def test_legacy_full_url_reference_is_downloaded(self, make_pipeline, seed_document, store, fetch):
        store.save_bytes("legacy.pdf", b"%PDF-1.4 legacy")
        doc = await seed_document(
            S.UPLOADED,
            with_file=False,
            file_uri="https://x.supabase.co/storage/v1/object/public/documents/legacy.pdf?token=abc",
        )
        result = await make_pipeline(StubEngine(_payload(90, 90, 90))).process(doc.doc_id)
        assert result["status"] == "approved"

    @pytest.mark.parametrize(
        "completion",
        [
            {"choices": [{"message": None}]},
            {"choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}]},
            {"choices": [{"message": {"tool_calls": ["oops"]}}]},
        ],
    )
    async def test_malformed_completion_from_gateway_fails_document(
        self, completion, make_pipeline, seed_document, fetch, session_factory
    ):
        doc = await seed_document(S.UPLOADED)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=completion))
        engine = VisionLLMEngine(api_url="https://gateway.test/v1/chat/completions", api_key="k", transport=transport)

        with pytest.raises(ParseError):
            await make_pipeline(engine).process(doc.doc_id)

        assert (await fetch(Document, doc.doc_id)).status == "failed"
        assert await _invoice_count(session_factory, doc.doc_id) == 0

    async def test_unexpected_engine_exception_fails_document(self, make_pipeline, seed_document, fetch, session_factory):
        doc = await seed_document(S.UPLOADED)
        engine = StubEngine(error=AttributeError("'NoneType' object has no attribute 'get'"))

        with pytest.raises(ExtractionError) as exc_info:
            await make_pipeline(engine).process(doc.doc_id)

        assert isinstance(exc_info.value.__cause__, AttributeError)
        assert (await fetch(Document, doc.doc_id)).status == "failed"
        assert await _invoice_count(session_factory, doc.doc_id) == 0

    async def test_failed_after_unexpected_exception_is_retryable(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        with pytest.raises(ExtractionError):
            await make_pipeline(StubEngine(error=TypeError("bad shape"))).process(doc.doc_id)

        result = await make_pipeline(StubEngine(_payload(90, 90, 90))).process(doc.doc_id)
        assert result["status"] == "approved"


class TestRetry:

    async def test_failed_document_can_be_retried(self, make_pipeline, seed_document, fetch, session_factory):
        doc = await seed_document(S.FAILED)
        result = await make_pipeline(StubEngine(_payload(70, 70, 70))).process(
            doc.doc_id, action=AuditAction.RETRY
        )
        assert result["status"] == "needs_review"

        async with session_factory() as s:
            actions = (await s.execute(select(AuditLog.action))).scalars().all()
        assert "retry" in actions

    @pytest.mark.parametrize("status", [S.PROCESSING, S.NEEDS_REVIEW, S.APPROVED])
    async def test_retry_rejected_outside_uploaded_or_failed(self, status, make_pipeline, seed_document, fetch):
        doc = await seed_document(status)
        engine = StubEngine(_payload(90, 90, 90))

        with pytest.raises(InvalidTransitionError):
            await make_pipeline(engine).process(doc.doc_id)

        assert engine.calls == []
        assert (await fetch(Document, doc.doc_id)).status == status.value

    async def test_unknown_document(self, make_pipeline):
        with pytest.raises(NotFoundError):
            await make_pipeline(StubEngine()).process(uuid.uuid4())

    async def test_re_extraction_replaces_invoice(self, make_pipeline, seed_document, seed_invoice, session_factory):
        doc = await seed_document(S.FAILED)
        old = await seed_invoice(doc)

        result = await make_pipeline(StubEngine(_payload(90, 90, 90))).process(doc.doc_id)

        assert result["invoice_id"] != str(old.invoice_id)
        assert await _invoice_count(session_factory, doc.doc_id) == 1


class TestBackgroundJob:

    async def test_errors_stop_at_the_job(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        pipeline = make_pipeline(StubEngine(error=RateLimitedError("busy", 429)))

        await run_extraction_job(pipeline, doc.doc_id)

        assert (await fetch(Document, doc.doc_id)).status == "failed"

    async def test_success(self, make_pipeline, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        await run_extraction_job(make_pipeline(StubEngine(_payload(95, 95, 95))), doc.doc_id)
        assert (await fetch(Document, doc.doc_id)).status == "approved"
