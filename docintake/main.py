"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docintake.api.router import api_router
from docintake.config import settings
from docintake.errors import IntakeError, PersistenceError, UpstreamError
from docintake.models.database import close_db, init_db
from docintake.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # Startup
    setup_logging()
    logger.info("app_starting", app=settings.APP_NAME, version=settings.APP_VERSION)

    # Sentry init if configured
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1,
        )

    # Local SQLite databases get their tables on start
    if settings.DATABASE_URL.startswith("sqlite"):
        await init_db()

    yield

    # Shutdown
    await close_db()


async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    """Render domain errors as {"error": code, "detail": message}."""
    body = {"error": exc.error_code, "detail": exc.message}
    if isinstance(exc, PersistenceError):
        body["step"] = exc.step
        body["completed_steps"] = exc.completed_steps
    if isinstance(exc, UpstreamError) and exc.upstream_status is not None:
        body["upstream_status"] = exc.upstream_status

    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_code=exc.error_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Document Intake Service",
        description="Upload, AI extraction and human review of UK energy invoices.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics endpoint
    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import make_asgi_app
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    app.add_exception_handler(IntakeError, intake_error_handler)

    # Include all API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()
