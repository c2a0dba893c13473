"""Auction pricing: the value a task is currently offered at.

An auction without bids starts at its base value and steps up toward
``base * range_multiplier`` at fixed local checkpoints (00:00, 03:00, ...,
21:00). The first checkpoints after the start are a grace window with no
markup. Growth stops at the planned end, and the first bid freezes the value.
"""

import functools
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from src.core.config import settings
from src.core.working_hours import WorkCalendar, to_local
from src.domain.bid import AuctionBid
from src.domain.task import Task, TaskMode


AuctionValue = Decimal | int

CENT = Decimal("0.01")


@dataclass(frozen=True)
class PricingSchedule:
    """Checkpoint schedule and bounds used to price auctions."""

    range_multiplier: Decimal = Decimal("1.5")
    checkpoint_hours: tuple[int, ...] = (0, 3, 6, 9, 12, 15, 18, 21)
    first_markup_checkpoint: int = 2
    no_bid_grace_hours: int = 3
    calendar: WorkCalendar = field(default_factory=WorkCalendar)

    def __post_init__(self) -> None:
        if self.range_multiplier < 1:
            msg = f"range_multiplier must be >= 1, got {self.range_multiplier}"
            raise ValueError(msg)
        if self.first_markup_checkpoint < 1:
            msg = f"first_markup_checkpoint must be >= 1, got {self.first_markup_checkpoint}"
            raise ValueError(msg)
        if not self.checkpoint_hours or any(not 0 <= hour < 24 for hour in self.checkpoint_hours):  # noqa: PLR2004
            msg = f"checkpoint_hours must be local hours in [0, 24), got {self.checkpoint_hours}"
            raise ValueError(msg)

    @property
    def no_bid_grace(self) -> timedelta:
        return timedelta(hours=self.no_bid_grace_hours)

    @classmethod
    def from_settings(cls) -> "PricingSchedule":
        """Build the schedule configured for this deployment."""
        return cls(
            range_multiplier=Decimal(settings.auction_range_multiplier),
            checkpoint_hours=tuple(sorted(settings.auction_checkpoint_hours)),
            first_markup_checkpoint=settings.auction_first_markup_checkpoint,
            no_bid_grace_hours=settings.no_bid_grace_hours,
            calendar=WorkCalendar.from_settings(),
        )


@functools.cache
def default_schedule() -> PricingSchedule:
    """Schedule selected once per process from settings."""
    return PricingSchedule.from_settings()


def _resolve(schedule: PricingSchedule | None) -> PricingSchedule:
    return schedule if schedule is not None else default_schedule()


def quantize_money(value: Decimal) -> Decimal:
    """Truncate a currency amount to whole cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_DOWN)


def round_minutes(value: Decimal | float | int) -> int:
    """Round a duration to the nearest whole minute, never below one."""
    rounded = int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(1, rounded)


def get_auction_base_value(task: Task, mode: TaskMode | None = None) -> AuctionValue | None:
    """Starting value of the auction in the unit matching ``mode``."""
    mode = mode or task.mode
    if mode == TaskMode.TIME:
        return task.base_time_minutes
    if task.base_price is None:
        return None
    return quantize_money(task.base_price)


def get_auction_max_value(
    task: Task,
    mode: TaskMode | None = None,
    schedule: PricingSchedule | None = None,
) -> AuctionValue | None:
    """Ceiling the auction value can reach: ``base * range_multiplier``."""
    mode = mode or task.mode
    base = get_auction_base_value(task, mode)
    if base is None:
        return None
    ceiling = Decimal(base) * _resolve(schedule).range_multiplier
    if mode == TaskMode.TIME:
        return round_minutes(ceiling)
    return quantize_money(ceiling)


def get_auction_cached_value(task: Task, mode: TaskMode | None = None) -> AuctionValue | None:
    """Value persisted by the latest bid, if any."""
    mode = mode or task.mode
    if task.current_price is None:
        return None
    if mode == TaskMode.TIME:
        return round_minutes(task.current_price)
    return quantize_money(task.current_price)


def get_bid_value(bid: AuctionBid, mode: TaskMode) -> AuctionValue | None:
    """Offered value of a bid in the unit matching ``mode``."""
    if mode == TaskMode.TIME:
        return bid.value_time_minutes
    if bid.value_money is None:
        return None
    return quantize_money(bid.value_money)


def count_checkpoints(start: datetime, current: datetime, schedule: PricingSchedule | None = None) -> int:
    """Number of local checkpoints strictly after ``start`` and at or before ``current``."""
    schedule = _resolve(schedule)
    local_start = to_local(start, schedule.calendar)
    local_current = to_local(current, schedule.calendar)
    if local_current <= local_start:
        return 0

    count = 0
    day = local_start.date()
    while day <= local_current.date():
        for hour in schedule.checkpoint_hours:
            checkpoint = datetime.combine(day, time(hour), tzinfo=local_start.tzinfo)
            if local_start < checkpoint <= local_current:
                count += 1
        day += timedelta(days=1)
    return count


def _escalated_value(task: Task, now: datetime, base: AuctionValue, mode: TaskMode, schedule: PricingSchedule) -> AuctionValue:
    start = task.auction_start_at
    planned_end = task.auction_planned_end_at
    effective_now = min(now, planned_end)

    offset = schedule.first_markup_checkpoint - 1
    steps = max(0, count_checkpoints(start, planned_end, schedule) - offset)
    increases = min(steps, max(0, count_checkpoints(start, effective_now, schedule) - offset))

    if steps == 0:
        return base

    markup = Decimal(base) * (schedule.range_multiplier - 1) * increases / steps
    value = Decimal(base) + markup

    if mode == TaskMode.TIME:
        return min(round_minutes(value), get_auction_max_value(task, mode, schedule))
    return quantize_money(value)


def current_auction_value(
    task: Task,
    now: datetime,
    mode: TaskMode | None = None,
    schedule: PricingSchedule | None = None,
) -> AuctionValue | None:
    """Value the task is offered at ``now``.

    Returns:
        None when the task has no auction window or no base value. Otherwise a
        value in ``[base, base * range_multiplier]``, non-decreasing in ``now``.
    """
    mode = mode or task.mode
    schedule = _resolve(schedule)

    if task.auction_start_at is None or task.auction_planned_end_at is None:
        return None

    base = get_auction_base_value(task, mode)
    if base is None:
        return None

    if now <= task.auction_start_at:
        return base

    if task.auction_has_bids:
        cached = get_auction_cached_value(task, mode)
        return cached if cached is not None else base

    return _escalated_value(task, now, base, mode, schedule)
