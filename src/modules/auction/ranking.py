"""Bid ranking, winner selection and bid value validation."""

import logging
from collections.abc import Collection, Iterable
from datetime import datetime
from decimal import Decimal, InvalidOperation

from src.core.errors import BetterBidExistsError, BidTooLowError, InvalidAuctionWindowError
from src.domain.bid import AuctionBid
from src.domain.task import Task, TaskMode
from src.modules.auction.pricing import (
    AuctionValue,
    PricingSchedule,
    current_auction_value,
    get_bid_value,
    quantize_money,
)


logger = logging.getLogger(__name__)

BidRankKey = tuple[bool, AuctionValue, int, datetime]


def _rank_key(value: AuctionValue | None, points: int, created: datetime) -> BidRankKey:
    # Missing values sort after every real value
    return (value is None, value if value is not None else 0, -points, created)


def _id_key(bid_id: str) -> tuple[int, int | str]:
    return (0, int(bid_id)) if bid_id.isdigit() else (1, bid_id)


def bid_sort_key(bid: AuctionBid, mode: TaskMode) -> tuple[BidRankKey, tuple[int, int | str]]:
    """Sort key placing the best bid first."""
    return (_rank_key(get_bid_value(bid, mode), bid.bidder_points, bid.created), _id_key(bid.id))


def compare_bids(a: AuctionBid, b: AuctionBid, mode: TaskMode = TaskMode.MONEY) -> int:
    """Order two bids, best first.

    Lower value wins, then higher snapshotted bidder points, then the earlier
    bid. The bid id breaks exact ties so the order is total.

    Returns:
        Negative if ``a`` ranks before ``b``, positive if after, 0 if identical.
    """
    key_a = bid_sort_key(a, mode)
    key_b = bid_sort_key(b, mode)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def rank_bids(bids: Iterable[AuctionBid], mode: TaskMode = TaskMode.MONEY) -> list[AuctionBid]:
    """Return bids sorted best first."""
    return sorted(bids, key=lambda bid: bid_sort_key(bid, mode))


def select_winning_bid(bids: Iterable[AuctionBid], mode: TaskMode = TaskMode.MONEY) -> AuctionBid | None:
    """Best bid under :func:`compare_bids`, or None for an empty set."""
    ranked = rank_bids(bids, mode)
    return ranked[0] if ranked else None


def filter_competing_bids(bids: Iterable[AuctionBid], admin_ids: Collection[str] = ()) -> list[AuctionBid]:
    """Keep active bids placed by non-administrative employees."""
    return [bid for bid in bids if bid.is_active and bid.bidder_id not in admin_ids]


def normalize_bid_value(value: Decimal | float | int | str, mode: TaskMode) -> AuctionValue:
    """Coerce a submitted bid value to the unit of ``mode``.

    Raises:
        ValueError: If the value is not a positive number of the right kind
    """
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        msg = f"Bid value is not a number: {value!r}"
        raise ValueError(msg) from e

    if not number.is_finite() or number <= 0:
        msg = f"Bid value must be positive, got {value!r}"
        raise ValueError(msg)

    if mode == TaskMode.TIME:
        if number != number.to_integral_value():
            msg = f"TIME bids are whole minutes, got {value!r}"
            raise ValueError(msg)
        return int(number)

    if number != quantize_money(number):
        msg = f"MONEY bids have at most two decimal places, got {value!r}"
        raise ValueError(msg)
    return quantize_money(number)


def validate_bid_value(
    task: Task,
    value: Decimal | float | int | str,
    active_bids: Iterable[AuctionBid],
    bidder_points: int,
    now: datetime,
    mode: TaskMode | None = None,
    schedule: PricingSchedule | None = None,
) -> AuctionValue:
    """Check that a new bid undercuts the auction and beats the current best bid.

    Returns:
        The bid value normalized to the task's unit

    Raises:
        InvalidAuctionWindowError: If the task cannot be priced
        BidTooLowError: If the value is not strictly below the current auction value
        BetterBidExistsError: If an active bid ranks at least as well
    """
    mode = mode or task.mode
    current_value = current_auction_value(task, now, mode, schedule)
    if current_value is None:
        raise InvalidAuctionWindowError(f"Task {task.id} has no auction window", task_id=task.id)

    bid_value = normalize_bid_value(value, mode)
    if not bid_value < current_value:
        raise BidTooLowError(
            f"Bid {bid_value} must be below the current auction value {current_value}",
            task_id=task.id,
        )

    best = select_winning_bid(active_bids, mode)
    if best is not None:
        candidate_key = _rank_key(bid_value, bidder_points, now)
        best_key = _rank_key(get_bid_value(best, mode), best.bidder_points, best.created)
        if not candidate_key < best_key:
            raise BetterBidExistsError(
                f"Bid {bid_value} does not beat the current best bid {get_bid_value(best, mode)}",
                task_id=task.id,
            )

    logger.debug(
        "Bid value accepted",
        extra={"task_id": task.id, "bid_value": str(bid_value), "current_value": str(current_value)},
    )
    return bid_value
