"""
structlog setup for the intake service.

Every line carries the service name and version so extraction and review
events can be told apart from other services sharing a log sink. Actor
context (user_id, role) is bound per request by the auth dependency.
"""

import logging
import sys

import structlog

from docintake.config import settings

# Libraries whose INFO output drowns out pipeline events
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "multipart", "python_multipart")


def add_service_identity(logger, method_name, event_dict):
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("version", settings.APP_VERSION)
    return event_dict


def setup_logging() -> None:
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_identity,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.DEBUG:
        final_processors = [structlog.dev.ConsoleRenderer()]
    else:
        # Tracebacks of failed extractions become a single JSON field
        final_processors = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final_processors],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DB_ECHO else logging.WARNING)


def bind_request_context(**values) -> None:
    """Attach key/values (actor id, role) to every log line of the current task."""
    structlog.contextvars.bind_contextvars(**values)
