"""Unit tests for working-hours calendar arithmetic."""

from datetime import UTC, datetime, timedelta

import pytest

from src.core.working_hours import (
    WorkCalendar,
    add_working_hours,
    calculate_overdue_penalty_hours,
    diff_working_hours,
    from_local,
    is_weekend,
    to_local,
)
from tests.unit.builders import CALENDAR, local


# 2024-01-01 is a Monday; 2024-01-05 a Friday
MONDAY_10 = local(2024, 1, 1, 10)
FRIDAY_17 = local(2024, 1, 5, 17)


@pytest.mark.unit
class TestLocalTime:
    """Tests for conversions to and from the organisation's clock."""

    def test_to_local_applies_fixed_offset(self):
        """Test that 05:00 UTC is 10:00 in UTC+5."""
        result = to_local(datetime(2024, 1, 1, 5, tzinfo=UTC), CALENDAR)
        assert (result.hour, result.utcoffset()) == (10, timedelta(hours=5))

    def test_from_local_reads_naive_as_local(self):
        """Test that a naive wall-clock time is interpreted in local time."""
        assert from_local(datetime(2024, 1, 1, 10), CALENDAR) == datetime(2024, 1, 1, 5, tzinfo=UTC)  # noqa: DTZ001

    def test_naive_input_is_read_as_utc(self):
        """Test that naive datetimes passed to to_local are treated as UTC."""
        assert to_local(datetime(2024, 1, 1, 5), CALENDAR).hour == 10  # noqa: DTZ001

    def test_is_weekend_uses_local_day(self):
        """Test that Friday 20:00 UTC is already Saturday locally."""
        assert is_weekend(datetime(2024, 1, 5, 20, tzinfo=UTC), CALENDAR) is True
        assert is_weekend(datetime(2024, 1, 5, 18, tzinfo=UTC), CALENDAR) is False
        assert is_weekend(local(2024, 1, 7, 12), CALENDAR) is True

    def test_invalid_workday_window_rejected(self):
        """Test that a workday must end after it starts."""
        with pytest.raises(ValueError, match="Invalid workday window"):
            WorkCalendar(workday_start_hour=18, workday_end_hour=9)


@pytest.mark.unit
class TestDiffWorkingHours:
    """Tests for diff_working_hours function."""

    def test_same_instant_is_zero(self):
        """Test that diff(d, d) is 0."""
        assert diff_working_hours(MONDAY_10, MONDAY_10, CALENDAR) == 0

    def test_reversed_range_is_zero(self):
        """Test that an end before the start yields 0."""
        assert diff_working_hours(MONDAY_10, MONDAY_10 - timedelta(hours=5), CALENDAR) == 0

    def test_within_one_day(self):
        """Test a span inside the workday window."""
        assert diff_working_hours(MONDAY_10, local(2024, 1, 1, 12, 30), CALENDAR) == 2.5

    def test_overnight_skips_non_working_hours(self):
        """Test that 17:00 to next day 10:00 counts 18:00-09:00 as zero."""
        assert diff_working_hours(local(2024, 1, 1, 17), local(2024, 1, 2, 10), CALENDAR) == 2

    def test_friday_evening_into_weekend(self):
        """Test that Friday 17:00 to Saturday noon is one working hour."""
        assert diff_working_hours(FRIDAY_17, local(2024, 1, 6, 12), CALENDAR) == 1

    def test_weekend_only_is_zero(self):
        """Test that a span entirely on the weekend is zero."""
        assert diff_working_hours(local(2024, 1, 6, 8), local(2024, 1, 7, 20), CALENDAR) == 0

    def test_full_week(self):
        """Test that a calendar week holds five nine-hour days."""
        assert diff_working_hours(local(2024, 1, 1), local(2024, 1, 8), CALENDAR) == 45


@pytest.mark.unit
class TestAddWorkingHours:
    """Tests for add_working_hours function."""

    def test_within_one_day(self):
        """Test an addition that fits in the current day."""
        assert add_working_hours(MONDAY_10, 3, CALENDAR) == local(2024, 1, 1, 13)

    def test_ending_exactly_at_close(self):
        """Test that an addition filling the day ends at closing time."""
        assert add_working_hours(local(2024, 1, 1, 17), 1, CALENDAR) == local(2024, 1, 1, 18)

    def test_spills_into_next_day(self):
        """Test that 2 hours from 17:00 ends at 10:00 the next day."""
        assert add_working_hours(local(2024, 1, 1, 17), 2, CALENDAR) == local(2024, 1, 2, 10)

    def test_friday_spills_past_weekend(self):
        """Test that the weekend is skipped."""
        assert add_working_hours(FRIDAY_17, 2, CALENDAR) == local(2024, 1, 8, 10)

    def test_before_opening_starts_at_opening(self):
        """Test that time before 09:00 is not counted."""
        assert add_working_hours(local(2024, 1, 1, 7), 1, CALENDAR) == local(2024, 1, 1, 10)

    def test_from_weekend_starts_monday(self):
        """Test that an addition starting on Sunday begins Monday morning."""
        assert add_working_hours(local(2024, 1, 7, 15), 0.5, CALENDAR) == local(2024, 1, 8, 9, 30)

    def test_review_window_of_48_hours(self):
        """Test the default review window from Monday 10:00."""
        # Mon 8h + Tue..Fri 36h = 44h, then 4h on the next Monday
        assert add_working_hours(MONDAY_10, 48, CALENDAR) == local(2024, 1, 8, 13)

    def test_result_is_utc(self):
        """Test that results are expressed in UTC."""
        assert add_working_hours(MONDAY_10, 1, CALENDAR).tzinfo == UTC

    def test_round_the_clock_calendar(self):
        """Test a 00:00-24:00 workday rolls over midnight."""
        calendar = WorkCalendar(utc_offset_hours=0, workday_start_hour=0, workday_end_hour=24)
        start = datetime(2024, 1, 1, 23, tzinfo=UTC)

        assert add_working_hours(start, 2, calendar) == datetime(2024, 1, 2, 1, tzinfo=UTC)

    @pytest.mark.parametrize("hours", [0.25, 1, 7.5, 9, 17.75, 48])
    @pytest.mark.parametrize("start", [MONDAY_10, FRIDAY_17, local(2024, 1, 3, 9)])
    def test_diff_inverts_add(self, start, hours):
        """Test that diff(start, add(start, h)) == h for starts inside working time."""
        assert diff_working_hours(start, add_working_hours(start, hours, CALENDAR), CALENDAR) == hours


@pytest.mark.unit
class TestOverduePenaltyHours:
    """Tests for calculate_overdue_penalty_hours function."""

    def test_on_time_is_zero(self):
        """Test that completion before the deadline costs nothing."""
        assert calculate_overdue_penalty_hours(MONDAY_10, MONDAY_10 - timedelta(hours=1), CALENDAR) == 0

    def test_exact_hours(self):
        """Test that whole late hours are counted as is."""
        assert calculate_overdue_penalty_hours(MONDAY_10, local(2024, 1, 1, 12), CALENDAR) == 2

    def test_partial_hour_rounds_up(self):
        """Test that any started working hour counts."""
        assert calculate_overdue_penalty_hours(MONDAY_10, local(2024, 1, 1, 10, 1), CALENDAR) == 1
        assert calculate_overdue_penalty_hours(MONDAY_10, local(2024, 1, 1, 12, 0, 1), CALENDAR) == 3

    def test_lateness_outside_working_hours_is_free(self):
        """Test that a deadline missed only overnight costs nothing."""
        assert calculate_overdue_penalty_hours(local(2024, 1, 1, 18), local(2024, 1, 2, 9), CALENDAR) == 0
