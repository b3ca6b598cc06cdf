"""
Structured logging configuration using structlog.

JSON lines when LOG_FORMAT=json, coloured console output otherwise.
"""

import hashlib
import logging
import sys

import structlog

from mathquest.config import settings


def setup_logging() -> None:
    """Configure structlog and the stdlib logging bridge. Call once at startup."""
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    level = getattr(logging, settings.log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # APScheduler, SQLAlchemy and uvicorn log through stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.INFO)


def fingerprint(identity: str) -> str:
    """Short, non-reversible tag for an identity so raw IPs never reach the logs."""
    return hashlib.sha256(identity.encode()).hexdigest()[:10]
