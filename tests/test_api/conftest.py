"""
Fixtures for HTTP-level tests: the real app with DB, storage, pipeline and
caller swapped for test doubles.
"""

import httpx
import pytest
import pytest_asyncio

from docintake.dependencies import get_artifact_store, get_current_actor, get_db, get_pipeline
from docintake.engines.stub_engine import StubEngine
from docintake.main import create_app
from docintake.pipeline.orchestrator import ExtractionPipeline


@pytest.fixture
def stub_engine(extraction_payload):
    return StubEngine(extraction_payload)


@pytest.fixture
def app(session_factory, store, stub_engine):
    app = create_app()

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    pipeline = ExtractionPipeline(engine=stub_engine, store=store, session_factory=session_factory)

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_artifact_store] = lambda: store
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    return app


@pytest.fixture
def act_as(app):
    """Make every request run as the given actor."""

    def _act_as(actor):
        app.dependency_overrides[get_current_actor] = lambda: actor
        return actor

    return _act_as


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
