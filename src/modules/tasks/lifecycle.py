"""Employee termination and manual point awards."""

import logging

from src.core.logging import log_with_context, span
from src.domain.employee import Employee
from src.domain.task import Task, TaskStatus
from src.modules.tasks import store


logger = logging.getLogger(__name__)

ACTIVE_WORK_STATUSES = (TaskStatus.IN_PROGRESS, TaskStatus.UNDER_REVIEW)


async def reassign_tasks_from_terminated_employee(*, employee_id: str) -> list[Task]:
    """Hand a leaving employee's active work back to its creators and withdraw their bids.

    Returns:
        The tasks that were reassigned
    """
    with span("lifecycle.reassign_tasks_from_terminated_employee"):
        active_tasks = await store.list_tasks_by_executor(executor_id=employee_id, statuses=ACTIVE_WORK_STATUSES)

        reassigned: list[Task] = []
        for task in active_tasks:
            updated = await store.update_task(
                task_id=task.id,
                data={
                    "executor_id": task.creator_id,
                    "executor_name": task.creator_name,
                    "auction_winner_id": task.creator_id,
                    "auction_winner_name": task.creator_name,
                },
                expected_status=task.status,
            )
            if updated is None:
                logger.warning("Task %s changed status during reassignment; skipped", task.id)
                continue
            reassigned.append(updated)

        affected_auctions = await store.deactivate_employee_bids(employee_id=employee_id)

        log_with_context(
            logger,
            "info",
            "Reassigned tasks from terminated employee",
            employee_id=employee_id,
            reassigned_task_ids=[task.id for task in reassigned],
            withdrawn_bid_task_ids=affected_auctions,
        )
        return reassigned


async def terminate_employee(*, employee_id: str) -> Employee:
    """Deactivate an employee and release everything they held."""
    with span("lifecycle.terminate_employee"):
        employee = await store.deactivate_employee(employee_id=employee_id)
        await reassign_tasks_from_terminated_employee(employee_id=employee_id)
        return employee


async def award_manual_points(*, task_id: str, points: int, comment: str | None = None) -> Task:
    """Award points by hand for a DONE task that never received them.

    Raises:
        ValueError: If ``points`` is negative
        InvalidTransitionError: If the task is not a DONE task awaiting points
    """
    if points < 0:
        msg = f"Manual awards cannot be negative, got {points}"
        raise ValueError(msg)

    with span("lifecycle.award_manual_points"):
        task = await store.add_manual_points(task_id=task_id, points=points, comment=comment)
        logger.info("Awarded %d manual points for task %s", points, task_id)
        return task
