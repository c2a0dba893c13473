"""Unit tests for the sweep job registration."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from src.core import scheduler
from src.core.scheduler_tracker import job_tracker, run_tracked_job
from src.modules.tasks.sweeper import SweepResult


@pytest.mark.unit
def test_start_scheduler_registers_sweep_job() -> None:
    """Test that the sweep runs every interval, never overlaps, and runs once at startup."""
    with patch("src.core.scheduler.scheduler", new=MagicMock()) as mock_scheduler:
        scheduler.start_scheduler()

    mock_scheduler.add_job.assert_called_once()
    args, kwargs = mock_scheduler.add_job.call_args
    assert args[0] is run_tracked_job
    assert isinstance(kwargs["trigger"], IntervalTrigger)
    assert kwargs["args"] == [scheduler.sweep_expired_items, scheduler.SWEEP_JOB_ID]
    assert kwargs["id"] == scheduler.SWEEP_JOB_ID
    assert kwargs["max_instances"] == 1
    assert kwargs["coalesce"] is True
    assert kwargs["next_run_time"] is not None
    mock_scheduler.start.assert_called_once()


@pytest.mark.unit
def test_stop_scheduler_waits_for_running_jobs() -> None:
    """Test that shutdown waits for an in-flight sweep."""
    with patch("src.core.scheduler.scheduler", new=MagicMock()) as mock_scheduler:
        scheduler.stop_scheduler()

    mock_scheduler.shutdown.assert_called_once_with(wait=True)


@pytest.mark.unit
async def test_sweep_job_runs_sweep() -> None:
    """Test that the job delegates to the sweeper."""
    with patch("src.core.scheduler.sweeper.run_sweep", new=AsyncMock(return_value=SweepResult())) as mock_sweep:
        await scheduler.sweep_expired_items()

    mock_sweep.assert_awaited_once()


@pytest.mark.unit
async def test_sweep_job_records_skip_while_sweep_running(monkeypatch) -> None:
    """Test that an overlapping trigger is recorded as skipped."""
    monkeypatch.setattr("src.modules.tasks.sweeper._sweep_in_progress", True)

    with patch("src.core.scheduler.sweeper.run_sweep", new=AsyncMock()) as mock_sweep:
        await scheduler.sweep_expired_items()

    mock_sweep.assert_not_awaited()
    status = await job_tracker.get_job_status(scheduler.SWEEP_JOB_ID)
    assert status["skipped_count"] == 1


@pytest.mark.unit
async def test_tracked_sweep_failure_is_visible_in_status() -> None:
    """Test that a crashing sweep is recorded by the tracker instead of raising."""
    with patch("src.core.scheduler.sweeper.run_sweep", new=AsyncMock(side_effect=RuntimeError("database is locked"))):
        await run_tracked_job(scheduler.sweep_expired_items, scheduler.SWEEP_JOB_ID)

    status = await job_tracker.get_job_status(scheduler.SWEEP_JOB_ID)
    assert status["consecutive_failures"] == 1
    assert status["last_error"] == "database is locked"
