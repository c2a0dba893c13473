"""Job execution tracking and monitoring for scheduled jobs."""

import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from src.core.config import constants


logger = logging.getLogger(__name__)

CONSECUTIVE_FAILURE_THRESHOLD = 3


class JobTracker:
    """Track job execution history and health status in process memory."""

    def __init__(self) -> None:
        """Initialize job tracker."""
        self._memory_storage: dict[str, dict[str, Any]] = {}
        self._dead_letter_queue: deque[tuple[str, str, str]] = deque(
            maxlen=constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN
        )

    def _job_data(self, job_name: str) -> dict[str, Any]:
        return self._memory_storage.setdefault(job_name, {})

    async def record_job_start(self, job_name: str) -> None:
        """Record job execution start.

        Args:
            job_name: Name of the scheduled job
        """
        self._job_data(job_name)["current_run"] = datetime.now(UTC).isoformat()

    async def record_job_success(self, job_name: str) -> None:
        """Record successful job execution.

        Args:
            job_name: Name of the scheduled job
        """
        job_data = self._job_data(job_name)
        job_data["last_success"] = datetime.now(UTC).isoformat()
        job_data["consecutive_failures"] = 0
        job_data["success_count"] = job_data.get("success_count", 0) + 1
        job_data.pop("current_run", None)

    async def record_job_failure(self, job_name: str, error: str) -> int:
        """Record failed job execution.

        Args:
            job_name: Name of the scheduled job
            error: Error message

        Returns:
            Number of consecutive failures including this one
        """
        job_data = self._job_data(job_name)
        job_data["last_failure"] = datetime.now(UTC).isoformat()
        job_data["last_error"] = error[: constants.TRACKER_ERROR_MAX_LENGTH]

        consecutive_failures = job_data.get("consecutive_failures", 0) + 1
        job_data["consecutive_failures"] = consecutive_failures
        job_data["failure_count"] = job_data.get("failure_count", 0) + 1
        job_data.pop("current_run", None)

        return consecutive_failures

    async def record_job_skipped(self, job_name: str, reason: str) -> None:
        """Record a run that was skipped, e.g. because the previous one is still going."""
        job_data = self._job_data(job_name)
        job_data["skipped_count"] = job_data.get("skipped_count", 0) + 1
        job_data["last_skip_reason"] = reason

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        """Get job execution status.

        Args:
            job_name: Name of the scheduled job

        Returns:
            Dict with job status information
        """
        job_data = self._memory_storage.get(job_name, {})
        return {
            "job_name": job_name,
            "last_success": job_data.get("last_success"),
            "last_failure": job_data.get("last_failure"),
            "last_error": job_data.get("last_error"),
            "consecutive_failures": job_data.get("consecutive_failures", 0),
            "success_count": job_data.get("success_count", 0),
            "failure_count": job_data.get("failure_count", 0),
            "skipped_count": job_data.get("skipped_count", 0),
            "currently_running": "current_run" in job_data,
            "current_run_started": job_data.get("current_run"),
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        """Add persistently failed job to dead letter queue.

        Args:
            job_name: Name of the scheduled job
            error: Error message
            context: Additional context about the failure
        """
        self._dead_letter_queue.append((job_name, error, context))

        logger.error(
            "Job added to dead letter queue",
            extra={
                "job_name": job_name,
                "error": error,
                "context": context,
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        """Get all items in dead letter queue.

        Returns:
            List of dead letter queue items
        """
        return [
            {
                "job_name": job_name,
                "error": error,
                "context": context,
            }
            for job_name, error, context in self._dead_letter_queue
        ]

    def reset(self) -> None:
        """Forget all recorded history."""
        self._memory_storage.clear()
        self._dead_letter_queue.clear()


# Global job tracker instance
job_tracker = JobTracker()


async def run_tracked_job(job_func: Callable[[], Awaitable[None]], job_name: str) -> None:
    """Execute a job and record its outcome.

    A failed run is not retried here; the next scheduled run picks the work
    up again.

    Args:
        job_func: Async function to execute
        job_name: Name of the job for tracking
    """
    await job_tracker.record_job_start(job_name)

    try:
        await job_func()
    except Exception as e:
        consecutive_failures = await job_tracker.record_job_failure(job_name, str(e))
        logger.exception(
            "%s failed",
            job_name,
            extra={"error": str(e), "consecutive_failures": consecutive_failures},
        )
        if consecutive_failures >= CONSECUTIVE_FAILURE_THRESHOLD:
            await job_tracker.add_to_dead_letter_queue(
                job_name=job_name,
                error=str(e),
                context=f"Failed {consecutive_failures} consecutive times",
            )
        return

    await job_tracker.record_job_success(job_name)
    logger.info("%s completed successfully", job_name)
