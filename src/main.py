"""taskbourse - task auction and lifecycle engine."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.scheduler import SWEEP_JOB_ID, start_scheduler, stop_scheduler
from src.core.scheduler_tracker import job_tracker
from src.core.working_hours import WorkCalendar
from src.modules.auction.pricing import PricingSchedule


logger = logging.getLogger(__name__)

HTTP_SERVICE_UNAVAILABLE = 503


def validate_startup_configuration() -> None:
    """Validate calendar and pricing settings before anything is scheduled.

    Fails fast with a clear message instead of letting the first sweep blow up.
    """
    logger.info("startup_validation_begin")

    try:
        WorkCalendar.from_settings()
        PricingSchedule.from_settings()
        if settings.review_working_hours <= 0:
            raise ValueError(f"review_working_hours must be positive, got {settings.review_working_hours}")
        logger.info("startup_validation_complete", extra={"status": "ok"})
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\nStartup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so validation logs are captured
    configure_logfire()

    validate_startup_configuration()

    await init_db()
    logger.info("Database initialized")

    start_scheduler()
    yield
    stop_scheduler()
    await close_connection()


app = FastAPI(
    title="taskbourse",
    description="Task auction and lifecycle engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with the sweep job status."""
    job_statuses = {SWEEP_JOB_ID: await job_tracker.get_job_status(SWEEP_JOB_ID)}
    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())

    overall_status = "degraded" if has_failures else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=constants.HTTP_OK if overall_status == "healthy" else HTTP_SERVICE_UNAVAILABLE,
    )
