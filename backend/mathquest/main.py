from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import inspect

from mathquest.config import settings
from mathquest.database import engine
from mathquest.logging_config import setup_logging
from mathquest.middleware.logging import CORRELATION_HEADER, LoggingMiddleware
from mathquest.middleware.rate_limit import limiter
from mathquest.routers import admin, certificates, leaderboard, problems
from mathquest.routers.problems import PLAYS_REMAINING_HEADER
from mathquest.scheduler import shutdown_scheduler, start_scheduler
from mathquest.services.discord_service import send_error_alert
from mathquest.services.quota_service import QuotaLedger, get_quota_ledger

# Tables are managed by Alembic migrations: alembic upgrade head
REQUIRED_TABLES = {"leaderboard", "ip_play_limits", "certificate_requests"}

logger = structlog.get_logger()


def check_database_tables() -> None:
    """Fail fast when migrations have not been applied."""
    existing = set(inspect(engine).get_table_names())
    missing = REQUIRED_TABLES - existing
    if missing:
        raise RuntimeError(
            f"Database tables missing: {', '.join(sorted(missing))}. "
            "Run `alembic upgrade head` from the backend directory first."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    check_database_tables()
    start_scheduler()
    yield
    shutdown_scheduler()


app = FastAPI(
    title="MathQuest",
    description="Generated math practice problems with a competitive leaderboard",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing request fields are client errors (400)."""
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid data", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Generic 500 without internal detail; the admin channel gets an alert."""
    correlation_id = getattr(request.state, "correlation_id", None)
    logger.error("unhandled_exception", path=request.url.path, error_type=type(exc).__name__)
    await send_error_alert(
        error_type=type(exc).__name__,
        message=str(exc),
        path=request.url.path,
        correlation_id=correlation_id,
    )
    headers = {CORRELATION_HEADER: correlation_id} if correlation_id else None
    return JSONResponse(
        status_code=500, content={"detail": "Internal Server Error"}, headers=headers
    )


app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[CORRELATION_HEADER, PLAYS_REMAINING_HEADER],
)

# Routers
app.include_router(problems.router, prefix="/api", tags=["problems"])
app.include_router(leaderboard.router, prefix="/api", tags=["leaderboard"])
app.include_router(certificates.router, prefix="/api", tags=["certificates"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/stats")
async def stats(ledger: QuotaLedger = Depends(get_quota_ledger)):
    """Play counters since the process started, and the limits in force."""
    return {
        "status": "Online",
        **ledger.play_stats(),
        "owner_ip_configured": "Yes" if settings.owner_ips else "No",
        "general_limit": (
            f"{settings.general_play_limit} requests / {settings.general_window_hours} hours"
        ),
        "daily_limit": "1 request / daily seed (via DB)",
    }
