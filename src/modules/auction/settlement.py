"""Auction settlement: closing auctions and assigning executors."""

import logging
from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, Field

from src.core.errors import SettlementRaceError
from src.core.logging import span
from src.domain.bid import AuctionBid
from src.domain.employee import Employee
from src.domain.task import Task, TaskMode, TaskStatus
from src.modules.auction.pricing import (
    AuctionValue,
    PricingSchedule,
    current_auction_value,
    default_schedule,
    get_auction_max_value,
    get_bid_value,
)
from src.modules.auction.ranking import filter_competing_bids, select_winning_bid
from src.modules.tasks import store


logger = logging.getLogger(__name__)


class SettlementDecision(BaseModel):
    """Who an auction closes to and at what value."""

    task_id: str = Field(..., description="Auction being settled")
    winner_id: str = Field(..., description="Employee who becomes the executor")
    winner_name: str = Field(..., description="Executor display name")
    earned_value: AuctionValue = Field(..., description="Value owed to the executor")
    mode: TaskMode = Field(..., description="Unit of earned_value")
    end_at: datetime = Field(..., description="When the auction closed")
    winning_bid_id: str | None = Field(default=None, description="Winning bid, None when no bid won")
    assigned_to_director: bool = Field(
        default=False, description="Closed without bids to the department director instead of the creator"
    )

    @property
    def assigned_to_creator(self) -> bool:
        return self.winning_bid_id is None and not self.assigned_to_director


def should_auto_assign_to_creator(task: Task, now: datetime, schedule: PricingSchedule | None = None) -> bool:
    """Whether the auction's close condition holds at ``now``.

    With bids the auction closes at its planned end. Without bids it waits a
    further grace period before falling back to the creator.
    """
    if task.auction_planned_end_at is None:
        return False
    if task.auction_has_bids:
        return now >= task.auction_planned_end_at
    grace = (schedule or default_schedule()).no_bid_grace
    return now >= task.auction_planned_end_at + grace


def calculate_earned_value(
    task: Task,
    winning_bid: AuctionBid | None,
    mode: TaskMode | None = None,
    now: datetime | None = None,
    schedule: PricingSchedule | None = None,
) -> AuctionValue | None:
    """Value owed to the executor once the auction closes.

    The winning bid's value if there is one. Otherwise the auction value at
    ``now``, or the ceiling once the no-bid grace window has fully elapsed.
    """
    mode = mode or task.mode
    schedule = schedule or default_schedule()

    if winning_bid is not None:
        bid_value = get_bid_value(winning_bid, mode)
        if bid_value is not None:
            return bid_value

    if now is None or (
        task.auction_planned_end_at is not None and now >= task.auction_planned_end_at + schedule.no_bid_grace
    ):
        return get_auction_max_value(task, mode, schedule)

    value = current_auction_value(task, now, mode, schedule)
    if value is not None:
        return value
    return get_auction_max_value(task, mode, schedule)


def decide_settlement(
    task: Task,
    bids: Iterable[AuctionBid],
    now: datetime,
    *,
    creator_is_admin: bool = False,
    director: Employee | None = None,
    schedule: PricingSchedule | None = None,
) -> SettlementDecision | None:
    """Decide how an auction settles at ``now``.

    ``bids`` must already exclude administrators' bids. An auction without
    bids closes to its creator, unless the creator is an administrator; then
    it closes to ``director``, and stays open when there is none.

    Returns:
        The decision, or None to leave the auction open until the next check
    """
    if task.status != TaskStatus.BACKLOG or not task.is_auction:
        return None
    if task.auction_start_at is None or task.auction_planned_end_at is None:
        return None

    winner = select_winning_bid([bid for bid in bids if bid.is_active], task.mode)
    # The live bid set decides which close rule applies, not the cached flag
    effective = task.model_copy(update={"auction_has_bids": winner is not None})

    if not should_auto_assign_to_creator(effective, now, schedule):
        return None

    if winner is None and creator_is_admin and director is None:
        logger.warning("Auction %s has no bids, an administrator creator and no director; leaving it open", task.id)
        return None

    earned_value = calculate_earned_value(effective, winner, task.mode, now, schedule)
    if earned_value is None:
        logger.warning("Auction %s has no base value; cannot settle", task.id)
        return None

    if winner is not None:
        return SettlementDecision(
            task_id=task.id,
            winner_id=winner.bidder_id,
            winner_name=winner.bidder_name,
            earned_value=earned_value,
            mode=task.mode,
            end_at=now,
            winning_bid_id=winner.id,
        )

    if creator_is_admin and director is not None:
        return SettlementDecision(
            task_id=task.id,
            winner_id=director.id,
            winner_name=director.name,
            earned_value=earned_value,
            mode=task.mode,
            end_at=now,
            assigned_to_director=True,
        )

    return SettlementDecision(
        task_id=task.id,
        winner_id=task.creator_id,
        winner_name=task.creator_name,
        earned_value=earned_value,
        mode=task.mode,
        end_at=now,
    )


async def settle_auction(task: Task, now: datetime, schedule: PricingSchedule | None = None) -> Task | None:
    """Close the auction if its close condition holds.

    Safe to call repeatedly: a task already out of BACKLOG, or closed by a
    concurrent writer, is left alone.

    Returns:
        The closed task, or None if nothing changed
    """
    with span("settlement.settle_auction"):
        if task.status != TaskStatus.BACKLOG:
            return None

        bids = await store.get_task_bids(task_id=task.id)
        admin_ids = await store.get_admin_ids()
        competing = filter_competing_bids(bids, admin_ids)
        creator_is_admin = task.creator_id in admin_ids
        director = None
        if creator_is_admin and not competing:
            director = await store.get_department_director(department_id=task.department_id)

        decision = decide_settlement(
            task,
            competing,
            now,
            creator_is_admin=creator_is_admin,
            director=director,
            schedule=schedule,
        )
        if decision is None:
            return None

        try:
            closed = await store.close_auction(
                task_id=decision.task_id,
                winner_id=decision.winner_id,
                winner_name=decision.winner_name,
                earned_value=decision.earned_value,
                mode=decision.mode,
                end_at=decision.end_at,
            )
        except SettlementRaceError:
            logger.info("Auction %s was settled by another writer", task.id)
            return None

        logger.info(
            "Settled auction %s to %s (%s) at %s",
            task.id,
            decision.winner_name,
            f"bid {decision.winning_bid_id}" if decision.winning_bid_id else "no bids",
            decision.earned_value,
        )
        return closed


async def settle_if_due(task_id: str, now: datetime, schedule: PricingSchedule | None = None) -> Task | None:
    """Re-read a task and settle it if its auction has expired."""
    task = await store.get_task(task_id=task_id)
    return await settle_auction(task, now, schedule)
