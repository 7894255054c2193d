"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import engine, get_db, init_db, DATABASE_URL
from .api import documents_router, versions_router, comments_router, jobs_router
from .core.config import settings, ConfigurationError, Environment
from .core.logging_config import setup_logging
from .middleware.exception_handler import review_exception_handler
from .middleware.request_context import RequestContextMiddleware
from .exceptions import ReviewException
from .services import JobCoordinator, JobDispatcher

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the plan review API."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    if settings.environment == Environment.DEVELOPMENT:
        if not settings.auth_enabled:
            logger.warning(
                "SECURITY: Authentication is disabled (AUTH_ENABLED=false). "
                f"Every request acts as '{settings.dev_user_id}'."
            )
        if not settings.integration_api_key:
            logger.warning(
                "INTEGRATION_API_KEY is empty. Accepted comments will fail "
                "unless the provider key is set in the environment."
            )

    logger.info(f"Connecting to database: {_mask_url(DATABASE_URL)}")
    try:
        init_db(engine)
    except SQLAlchemyError as e:
        logger.critical(f"Database initialisation failed: {e}")
        raise SystemExit(1) from e

    coordinator = JobCoordinator()
    app.state.coordinator = coordinator
    app.state.dispatcher = None
    if settings.worker_dispatch_in_process:
        dispatcher = JobDispatcher(coordinator, max_workers=settings.worker_pool_size)
        dispatcher.recover()
        app.state.dispatcher = dispatcher
        logger.info(f"In-process job dispatcher started ({settings.worker_pool_size} workers)")
    else:
        logger.info("In-process dispatch disabled; run worker.py to process jobs")

    yield

    if app.state.dispatcher is not None:
        app.state.dispatcher.shutdown(wait=True)


app = FastAPI(
    title="Plan Review API",
    description=(
        "Collaborative review of plan documents. Reviewers anchor comments to "
        "line ranges and discuss them; the owner accepts a comment to have an "
        "AI model rewrite the plan, producing a new immutable version.\n\n"
        "**Authentication:** When `AUTH_ENABLED=true`, every endpoint requires a "
        "`Bearer` token in the `Authorization` header."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(ReviewException, review_exception_handler)

app.include_router(documents_router)
app.include_router(versions_router)
app.include_router(comments_router)
app.include_router(jobs_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Plan Review API",
        "version": "1.0.0",
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Database status, uptime and queue depth.

    Never raises; returns degraded status on DB failure so load balancers
    can still probe without receiving 5xx.
    """
    db_status = "ok"
    pending_jobs = 0
    try:
        row = db.execute(
            text("SELECT COUNT(*) FROM integration_jobs WHERE status = 'pending'")
        ).scalar()
        pending_jobs = row or 0
    except SQLAlchemyError:
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": "1.0.0",
        "pending_jobs": pending_jobs,
    }
