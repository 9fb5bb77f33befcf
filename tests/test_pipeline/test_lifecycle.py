"""
Tests for the document lifecycle state machine.
"""

import uuid

import pytest

from docintake.errors import InvalidTransitionError, NotFoundError
from docintake.models.enums import DocumentStatus as S
from docintake.models.tables import Document
from docintake.pipeline.lifecycle import (
    RETRYABLE_STATUSES,
    TRANSITIONS,
    can_transition,
    processing_step_label,
    sources_for,
    transition,
)


class TestTransitionTable:

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(S)

    def test_processing_never_returns_to_uploaded(self):
        assert not can_transition(S.PROCESSING, S.UPLOADED)
        assert S.UPLOADED not in sources_for(S.UPLOADED)

    def test_approved_is_terminal(self):
        assert TRANSITIONS[S.APPROVED] == frozenset()

    def test_extraction_outcomes(self):
        assert sources_for(S.NEEDS_REVIEW) == {S.PROCESSING}
        assert sources_for(S.FAILED) == {S.PROCESSING}
        assert sources_for(S.APPROVED) == {S.PROCESSING, S.NEEDS_REVIEW}

    def test_only_uploaded_and_failed_can_start_processing(self):
        assert RETRYABLE_STATUSES == {S.UPLOADED, S.FAILED}
        assert not can_transition(S.PROCESSING, S.PROCESSING)
        assert not can_transition(S.NEEDS_REVIEW, S.PROCESSING)


class TestProcessingStepLabel:

    def test_known_statuses(self):
        assert processing_step_label("uploaded") == "Waiting to process"
        assert processing_step_label("processing") == "AI extracting data..."
        assert processing_step_label("needs_review") == "Awaiting human review"
        assert processing_step_label("approved") == "Complete"
        assert processing_step_label("failed") == "Processing failed"

    def test_unknown_status(self):
        assert processing_step_label("archived") == "Unknown"


class TestTransition:
    """Conditional UPDATE against a real (SQLite) table."""

    async def test_allowed_transition_updates_row(self, session, seed_document, fetch):
        doc = await seed_document(S.UPLOADED)
        await transition(session, doc.doc_id, S.PROCESSING)
        await session.commit()

        stored = await fetch(Document, doc.doc_id)
        assert stored.status == S.PROCESSING.value

    async def test_rejected_transition_raises_and_leaves_row(self, session, seed_document, fetch):
        doc = await seed_document(S.PROCESSING)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await transition(session, doc.doc_id, S.PROCESSING)

        assert exc_info.value.current == "processing"
        assert exc_info.value.status_code == 409
        assert (await fetch(Document, doc.doc_id)).status == S.PROCESSING.value

    async def test_missing_document(self, session):
        with pytest.raises(NotFoundError):
            await transition(session, uuid.uuid4(), S.PROCESSING)

    async def test_non_scored_status_clears_confidence(self, session, seed_document, fetch):
        doc = await seed_document(S.FAILED, overall_confidence=70)
        await transition(session, doc.doc_id, S.PROCESSING)
        await session.commit()

        assert (await fetch(Document, doc.doc_id)).overall_confidence is None

    async def test_extra_values_written_in_same_statement(self, session, seed_document, fetch):
        doc = await seed_document(S.PROCESSING)
        await transition(session, doc.doc_id, S.NEEDS_REVIEW, overall_confidence=72, supplier_name="EDF")
        await session.commit()

        stored = await fetch(Document, doc.doc_id)
        assert stored.status == S.NEEDS_REVIEW.value
        assert stored.overall_confidence == 72
        assert stored.supplier_name == "EDF"

    async def test_second_racing_writer_loses(self, session_factory, seed_document):
        doc = await seed_document(S.FAILED)

        async with session_factory() as first:
            await transition(first, doc.doc_id, S.PROCESSING)
            await first.commit()

        async with session_factory() as second:
            with pytest.raises(InvalidTransitionError):
                await transition(second, doc.doc_id, S.PROCESSING)

    async def test_allowed_from_narrows_sources(self, session, seed_document):
        doc = await seed_document(S.NEEDS_REVIEW)
        with pytest.raises(InvalidTransitionError):
            await transition(session, doc.doc_id, S.APPROVED, allowed_from={S.PROCESSING})
