"""Working-hours calendar arithmetic in the organisation's local time.

All functions take timezone-aware datetimes (naive values are read as UTC)
and return UTC datetimes. Local time is a fixed UTC offset; daylight saving
is not modelled.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta, timezone, tzinfo

from src.core.config import settings


SATURDAY = 5
ONE_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class WorkCalendar:
    """Organisation-local clock and workday window."""

    utc_offset_hours: float = 5.0
    workday_start_hour: int = 9
    workday_end_hour: int = 18

    def __post_init__(self) -> None:
        if not 0 <= self.workday_start_hour < self.workday_end_hour <= 24:  # noqa: PLR2004
            msg = f"Invalid workday window: {self.workday_start_hour}:00-{self.workday_end_hour}:00"
            raise ValueError(msg)

    @property
    def tz(self) -> tzinfo:
        return timezone(timedelta(hours=self.utc_offset_hours))

    @classmethod
    def from_settings(cls) -> "WorkCalendar":
        """Build the calendar configured for this deployment."""
        return cls(
            utc_offset_hours=settings.org_utc_offset_hours,
            workday_start_hour=settings.workday_start_hour,
            workday_end_hour=settings.workday_end_hour,
        )


def _resolve(calendar: WorkCalendar | None) -> WorkCalendar:
    return calendar if calendar is not None else WorkCalendar.from_settings()


def _ensure_aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


def to_local(moment: datetime, calendar: WorkCalendar | None = None) -> datetime:
    """Express an instant in the organisation's local time."""
    return _ensure_aware(moment).astimezone(_resolve(calendar).tz)


def from_local(local_moment: datetime, calendar: WorkCalendar | None = None) -> datetime:
    """Read a naive wall-clock time as organisation-local and return it in UTC."""
    cal = _resolve(calendar)
    if local_moment.tzinfo is None:
        local_moment = local_moment.replace(tzinfo=cal.tz)
    return local_moment.astimezone(UTC)


def is_weekend(moment: datetime, calendar: WorkCalendar | None = None) -> bool:
    """Whether the instant falls on a local Saturday or Sunday."""
    return to_local(moment, calendar).weekday() >= SATURDAY


def _at_hour(day: datetime, hour: int) -> datetime:
    """Local datetime for ``hour`` on the same day as ``day`` (hour 24 is next midnight)."""
    midnight = datetime.combine(day.date(), time(0), tzinfo=day.tzinfo)
    return midnight + timedelta(hours=hour)


def _next_day_at(day: datetime, hour: int) -> datetime:
    return _at_hour(day + timedelta(days=1), hour)


def working_time_between(start: datetime, end: datetime, calendar: WorkCalendar | None = None) -> timedelta:
    """Exact working time between two instants; zero when ``end <= start``."""
    cal = _resolve(calendar)
    current = to_local(start, cal)
    local_end = to_local(end, cal)
    total = timedelta(0)

    while current < local_end:
        if current.weekday() >= SATURDAY:
            current = _next_day_at(current, 0)
            continue

        window_start = max(current, _at_hour(current, cal.workday_start_hour))
        window_end = min(local_end, _at_hour(current, cal.workday_end_hour))
        if window_end > window_start:
            total += window_end - window_start

        current = _next_day_at(current, 0)

    return total


def diff_working_hours(start: datetime, end: datetime, calendar: WorkCalendar | None = None) -> float:
    """Working hours between two instants, counted inside the workday window on weekdays."""
    return working_time_between(start, end, calendar) / ONE_HOUR


def add_working_hours(start: datetime, hours: float, calendar: WorkCalendar | None = None) -> datetime:
    """Instant reached after consuming ``hours`` working hours from ``start``.

    Time outside the workday window and on weekends is skipped. A span that
    does not fit in the current day continues at the next workday's start.
    """
    cal = _resolve(calendar)
    current = to_local(start, cal)
    remaining = timedelta(hours=hours)

    while remaining > timedelta(0):
        if current.weekday() >= SATURDAY:
            current = _next_day_at(current, cal.workday_start_hour)
            continue

        day_start = _at_hour(current, cal.workday_start_hour)
        day_end = _at_hour(current, cal.workday_end_hour)

        if current < day_start:
            current = day_start
            continue
        if current >= day_end:
            current = _next_day_at(current, cal.workday_start_hour)
            continue

        step = min(remaining, day_end - current)
        current += step
        remaining -= step

        if remaining > timedelta(0):
            current = _next_day_at(day_start, cal.workday_start_hour)

    return current.astimezone(UTC)


def calculate_overdue_penalty_hours(
    deadline: datetime,
    completed_at: datetime,
    calendar: WorkCalendar | None = None,
) -> int:
    """Late working hours, rounded up; zero when completed on time."""
    late = working_time_between(deadline, completed_at, calendar)
    if late <= timedelta(0):
        return 0
    return -(-late // ONE_HOUR)
