"""Bid placement."""

import logging
from datetime import datetime
from decimal import Decimal

from src.core.errors import AuctionClosedError
from src.core.logging import span
from src.domain.bid import AuctionBid
from src.domain.task import TaskStatus
from src.modules.auction.eligibility import check_bid_eligibility
from src.modules.auction.pricing import PricingSchedule, current_auction_value, default_schedule
from src.modules.auction.ranking import filter_competing_bids, validate_bid_value
from src.modules.auction.settlement import settle_if_due, should_auto_assign_to_creator
from src.modules.tasks import store


logger = logging.getLogger(__name__)


async def place_bid(
    *,
    task_id: str,
    bidder_id: str,
    value: Decimal | int | str,
    now: datetime,
    schedule: PricingSchedule | None = None,
) -> AuctionBid:
    """Place a bid on an auctioned task.

    Expired auctions are settled first, so a late bid never reopens one.

    Args:
        task_id: Task being bid on
        bidder_id: Employee placing the bid
        value: Offered price (MONEY) or minutes (TIME)
        now: Submission time
        schedule: Pricing schedule, defaults to the configured one

    Returns:
        The stored bid

    Raises:
        TaskNotFoundError: If the task does not exist
        AuctionClosedError: If the auction is settled, expired or not yet open
        BidNotAllowedError: If the employee may not bid on this task
        BidTooLowError: If the value does not undercut the current auction value
        BetterBidExistsError: If an active bid ranks at least as well
    """
    with span("bidding.place_bid"):
        schedule = schedule or default_schedule()

        await settle_if_due(task_id, now, schedule)
        task = await store.get_task(task_id=task_id)

        if task.status != TaskStatus.BACKLOG or not task.is_auction:
            raise AuctionClosedError(f"Auction {task_id} is closed", task_id=task_id)
        if task.auction_start_at is not None and now < task.auction_start_at:
            raise AuctionClosedError(f"Auction {task_id} has not started yet", task_id=task_id)
        if should_auto_assign_to_creator(task, now, schedule):
            raise AuctionClosedError(f"Auction {task_id} has expired", task_id=task_id)

        bidder = await store.get_employee(employee_id=bidder_id)
        check_bid_eligibility(task, bidder)

        bids = await store.get_task_bids(task_id=task_id)
        admin_ids = await store.get_admin_ids()
        competing = filter_competing_bids(bids, admin_ids)

        bid_value = validate_bid_value(task, value, competing, bidder.points, now, task.mode, schedule)

        # The first bid freezes the auction value that time-based pricing had reached
        frozen_price = None if task.auction_has_bids else current_auction_value(task, now, task.mode, schedule)

        bid = await store.insert_bid(
            task_id=task_id,
            bidder=bidder,
            value=bid_value,
            mode=task.mode,
            frozen_price=frozen_price,
            now=now,
            no_bid_grace=schedule.no_bid_grace,
        )

        logger.info("Accepted bid %s on task %s: %s by %s", bid.id, task_id, bid_value, bidder.name)
        return bid
