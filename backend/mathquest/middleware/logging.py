"""
Per-request logging with correlation IDs.

Every request gets an 8-hex-char correlation ID, bound into the structlog
context and echoed back in X-Correlation-ID. A well-formed ID sent by the
client (for example by the game frontend retrying a request) is reused.

Client addresses, query strings and headers are never logged.
"""

import re
import secrets
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-ID"
_CORRELATION_ID_RE = re.compile(r"^[0-9a-f]{8}$")


def generate_correlation_id() -> str:
    return secrets.token_hex(4)


def resolve_correlation_id(request: Request) -> str:
    inbound = request.headers.get(CORRELATION_HEADER, "").lower()
    if _CORRELATION_ID_RE.match(inbound):
        return inbound
    return generate_correlation_id()


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = resolve_correlation_id(request)
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        logger = structlog.get_logger()

        logger.info("request_started", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                exc_info=True,
            )
            raise

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
