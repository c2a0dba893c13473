"""Scheduler for the periodic auction and review sweep."""

import logging
from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.config import settings
from src.core.scheduler_tracker import job_tracker, run_tracked_job
from src.modules.tasks import sweeper


logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "auction_review_sweep"

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def sweep_expired_items() -> None:
    """Settle expired auctions and reopen expired reviews."""
    if sweeper.is_sweep_running():
        await job_tracker.record_job_skipped(SWEEP_JOB_ID, "previous sweep still running")
        logger.warning("Skipping sweep: previous run still in progress")
        return

    result = await sweeper.run_sweep(datetime.now(UTC))
    failed = result.auctions.failed + result.reviews.failed
    if failed:
        logger.warning("Sweep finished with %d failed items", failed, extra=result.model_dump())


def start_scheduler() -> None:
    """Start the scheduler and register the sweep job.

    This should be called during FastAPI app startup. The sweep also runs
    once immediately.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        run_tracked_job,
        trigger=IntervalTrigger(minutes=settings.sweep_interval_minutes),
        args=[sweep_expired_items, SWEEP_JOB_ID],
        id=SWEEP_JOB_ID,
        name="Settle Expired Auctions and Reviews",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(UTC),
    )
    logger.info(f"Scheduled sweep job: every {settings.sweep_interval_minutes} minutes, first run now")

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
