"""Periodic sweep over expired auctions and expired reviews."""

import logging
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.core.logging import span
from src.modules.auction.pricing import PricingSchedule
from src.modules.auction.settlement import settle_auction
from src.modules.tasks import state_machine, store


logger = logging.getLogger(__name__)

# Only one sweep may run at a time within the process
_sweep_in_progress = False


class SweepStats(BaseModel):
    """Counters for one half of a sweep."""

    checked: int = Field(default=0, description="Items storage returned as candidates")
    changed: int = Field(default=0, description="Items actually settled or reopened")
    failed: int = Field(default=0, description="Items that raised and were skipped")


class SweepResult(BaseModel):
    """Outcome of one sweep."""

    auctions: SweepStats = Field(default_factory=SweepStats)
    reviews: SweepStats = Field(default_factory=SweepStats)
    skipped: bool = Field(default=False, description="True if another sweep was still running")


async def process_expired_auctions(now: datetime, schedule: PricingSchedule | None = None) -> SweepStats:
    """Settle every backlog auction whose close condition holds at ``now``."""
    with span("sweeper.process_expired_auctions"):
        stats = SweepStats()
        candidates = await store.get_auctions_to_close(now=now)
        stats.checked = len(candidates)

        for task in candidates:
            try:
                if await settle_auction(task, now, schedule) is not None:
                    stats.changed += 1
            except Exception:
                stats.failed += 1
                logger.exception("Error settling auction %s", task.id, extra={"task_id": task.id})

        if candidates:
            logger.info("Processed %d expired auctions: %s", len(candidates), stats.model_dump())
        return stats


async def process_expired_reviews(now: datetime) -> SweepStats:
    """Return every task whose review deadline passed to IN_PROGRESS."""
    with span("sweeper.process_expired_reviews"):
        stats = SweepStats()
        candidates = await store.get_reviews_to_expire(now=now)
        stats.checked = len(candidates)

        for task in candidates:
            try:
                if await state_machine.expire_review(task=task, now=now) is not None:
                    stats.changed += 1
            except Exception:
                stats.failed += 1
                logger.exception("Error expiring review of task %s", task.id, extra={"task_id": task.id})

        if candidates:
            logger.info("Processed %d expired reviews: %s", len(candidates), stats.model_dump())
        return stats


async def run_sweep(now: datetime | None = None, schedule: PricingSchedule | None = None) -> SweepResult:
    """Run both sweeps once; a call made while another sweep runs is skipped."""
    global _sweep_in_progress  # noqa: PLW0603

    if _sweep_in_progress:
        logger.warning("Previous sweep still running; skipping this one")
        return SweepResult(skipped=True)

    _sweep_in_progress = True
    try:
        now = now or datetime.now(UTC)
        auctions = await process_expired_auctions(now, schedule)
        reviews = await process_expired_reviews(now)
        return SweepResult(auctions=auctions, reviews=reviews)
    finally:
        _sweep_in_progress = False


def is_sweep_running() -> bool:
    return _sweep_in_progress
