"""Task lifecycle state machine.

Guards are checked by :func:`check_transition` before anything is written.
Writes are conditional on the status the guard saw, so a task that moved
underneath the caller is rejected instead of overwritten.
"""

import logging
from datetime import datetime

from src.core import db_client
from src.core.config import settings
from src.core.errors import InvalidTransitionError, MissingGuardPreconditionError, TransitionPermissionError
from src.core.logging import log_with_task_context, span
from src.core.working_hours import WorkCalendar, add_working_hours, calculate_overdue_penalty_hours
from src.domain.employee import Employee
from src.domain.task import Task, TaskStatus
from src.modules.tasks import store
from src.modules.tasks.points import base_points_for_grade


logger = logging.getLogger(__name__)


TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.BACKLOG: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.UNDER_REVIEW},
    TaskStatus.UNDER_REVIEW: {TaskStatus.IN_PROGRESS, TaskStatus.DONE},
    TaskStatus.DONE: set(),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in TRANSITIONS[current]


def _is_department_director(actor: Employee, task: Task) -> bool:
    return actor.is_director and actor.department_id == task.department_id


def check_transition(
    task: Task,
    target: TaskStatus,
    *,
    actor: Employee,
    now: datetime,
    comment: str | None = None,
) -> None:
    """Validate a requested transition without side effects.

    Raises:
        InvalidTransitionError: If the lifecycle does not allow the change
        TransitionPermissionError: If ``actor`` may not perform it
        MissingGuardPreconditionError: If a required precondition is missing
    """
    if not can_transition(task.status, target):
        raise InvalidTransitionError(f"Cannot move task {task.id} from {task.status} to {target}", task_id=task.id)

    is_admin = actor.is_admin
    is_executor = task.executor_id is not None and actor.id == task.executor_id
    is_director = _is_department_director(actor, task)

    if task.status == TaskStatus.BACKLOG:
        if task.executor_id is None:
            raise MissingGuardPreconditionError(f"Cannot start: task {task.id} has no executor", task_id=task.id)
        if not (is_executor or is_director or is_admin):
            raise TransitionPermissionError(
                f"Only the executor, the department director or an administrator can start task {task.id}",
                task_id=task.id,
            )

    elif task.status == TaskStatus.IN_PROGRESS:
        if not (is_executor or is_admin):
            raise TransitionPermissionError(
                f"Only the executor or an administrator can submit task {task.id} for review",
                task_id=task.id,
            )

    elif target == TaskStatus.IN_PROGRESS:
        if not (actor.id == task.creator_id or is_director or is_admin):
            raise TransitionPermissionError(
                f"Only the creator, the department director or an administrator can return task {task.id}",
                task_id=task.id,
            )
        if not comment or not comment.strip():
            raise MissingGuardPreconditionError(
                f"Returning task {task.id} to work requires a comment",
                task_id=task.id,
            )

    else:
        if not (is_director or is_admin):
            raise TransitionPermissionError(
                f"Only the department director or an administrator can complete task {task.id}",
                task_id=task.id,
            )
        if task.executor_id is None:
            raise MissingGuardPreconditionError(f"Cannot complete: task {task.id} has no executor", task_id=task.id)
        if task.review_deadline is not None and now > task.review_deadline:
            raise InvalidTransitionError(
                f"Cannot complete: review of task {task.id} expired at {task.review_deadline.isoformat()}",
                task_id=task.id,
            )


async def _load(task_id: str, actor_id: str) -> tuple[Task, Employee]:
    task = await store.get_task(task_id=task_id)
    actor = await store.get_employee(employee_id=actor_id)
    return task, actor


async def start_task(*, task_id: str, actor_id: str, now: datetime) -> Task:
    """BACKLOG -> IN_PROGRESS for a task that already has an executor."""
    with span("task_state_machine.start_task"):
        task, actor = await _load(task_id, actor_id)
        check_transition(task, TaskStatus.IN_PROGRESS, actor=actor, now=now)

        updated = await store.start_task(task_id=task_id)
        logger.info("Transitioned task %s to IN_PROGRESS", task_id)
        return updated


async def submit_for_review(
    *,
    task_id: str,
    actor_id: str,
    now: datetime,
    calendar: WorkCalendar | None = None,
) -> Task:
    """IN_PROGRESS -> UNDER_REVIEW, starting the review clock."""
    with span("task_state_machine.submit_for_review"):
        task, actor = await _load(task_id, actor_id)
        check_transition(task, TaskStatus.UNDER_REVIEW, actor=actor, now=now)

        review_deadline = add_working_hours(now, settings.review_working_hours, calendar)
        updated = await store.update_task(
            task_id=task_id,
            data={"status": TaskStatus.UNDER_REVIEW, "review_deadline": review_deadline},
            expected_status=TaskStatus.IN_PROGRESS,
        )
        if updated is None:
            raise InvalidTransitionError(f"Cannot submit: task {task_id} changed status", task_id=task_id)

        logger.info("Transitioned task %s to UNDER_REVIEW, review due %s", task_id, review_deadline.isoformat())
        return updated


async def return_to_work(*, task_id: str, actor_id: str, comment: str, now: datetime) -> Task:
    """UNDER_REVIEW -> IN_PROGRESS with the reviewer's comment."""
    with span("task_state_machine.return_to_work"):
        task, actor = await _load(task_id, actor_id)
        check_transition(task, TaskStatus.IN_PROGRESS, actor=actor, now=now, comment=comment)

        async with db_client.transaction():
            updated = await store.update_task(
                task_id=task_id,
                data={"status": TaskStatus.IN_PROGRESS, "review_deadline": None},
                expected_status=TaskStatus.UNDER_REVIEW,
            )
            if updated is None:
                raise InvalidTransitionError(f"Cannot return: task {task_id} changed status", task_id=task_id)
            await store.add_task_comment(task_id=task_id, author=actor, content=comment.strip())

        logger.info("Returned task %s to IN_PROGRESS", task_id)
        return updated


async def complete_task(
    *,
    task_id: str,
    actor_id: str,
    now: datetime,
    calendar: WorkCalendar | None = None,
) -> Task:
    """UNDER_REVIEW -> DONE, awarding points and any overdue penalty."""
    with span("task_state_machine.complete_task"):
        task, actor = await _load(task_id, actor_id)
        check_transition(task, TaskStatus.DONE, actor=actor, now=now)

        base_points = base_points_for_grade(task.minimum_grade)
        penalty_hours = calculate_overdue_penalty_hours(task.deadline, now, calendar)

        updated = await store.complete_task(
            task_id=task_id,
            done_at=now,
            base_points=base_points,
            penalty_hours=penalty_hours,
        )
        logger.info(
            "Transitioned task %s to DONE (base %d points, %d late working hours)",
            task_id,
            base_points,
            penalty_hours,
        )
        return updated


async def expire_review(*, task: Task, now: datetime) -> Task | None:
    """Return a task whose review deadline passed to IN_PROGRESS; no comment needed.

    Returns:
        The updated task, or None if it was no longer an expired review
    """
    with span("task_state_machine.expire_review"):
        if task.status != TaskStatus.UNDER_REVIEW or task.review_deadline is None or task.review_deadline > now:
            return None

        updated = await store.reopen_expired_review(task_id=task.id, now=now)
        if updated is None:
            logger.info("Review of task %s was decided before it expired", task.id)
            return None

        log_with_task_context(logger, "info", "Review deadline expired", task_id=task.id, status=updated.status)
        return updated
