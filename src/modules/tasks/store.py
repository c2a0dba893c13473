"""Persistence for tasks, bids, employees and the point ledger.

Every write that settles, transitions or awards points is conditional on the
state the caller observed, so concurrent writers cannot double-apply it.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from src.core import db_client
from src.core.config import constants
from src.core.db_client import sanitize_param, to_db_timestamp
from src.core.errors import AuctionClosedError, InvalidTransitionError, SettlementRaceError, TaskNotFoundError
from src.core.logging import span
from src.domain.bid import AuctionBid
from src.domain.create_models import EmployeeCreate, TaskCreate
from src.domain.employee import Employee, EmployeeRole, PointTransaction, PointTransactionType
from src.domain.task import Task, TaskComment, TaskMode, TaskStatus, TaskType
from src.modules.auction.pricing import AuctionValue, default_schedule
from src.modules.tasks.points import calculate_grade, penalty_points


logger = logging.getLogger(__name__)

TASKS = "tasks"
BIDS = "auction_bids"
EMPLOYEES = "employees"
LEDGER = "point_transactions"
COMMENTS = "task_comments"


def _status_filter(status: TaskStatus) -> str:
    return f'status = "{status}"'


# Employees


async def create_employee(*, employee: EmployeeCreate) -> Employee:
    """Create an employee whose grade is derived from their starting points."""
    data = employee.model_dump()
    data["grade"] = calculate_grade(employee.points)
    record = await db_client.create_record(collection=EMPLOYEES, data=data)
    return Employee.model_validate(record)


async def get_employee(*, employee_id: str) -> Employee:
    """Fetch an employee by ID.

    Raises:
        KeyError: If the employee does not exist
    """
    record = await db_client.get_record(collection=EMPLOYEES, record_id=employee_id)
    return Employee.model_validate(record)


async def get_admin_ids() -> set[str]:
    """IDs of every administrator account."""
    records = await db_client.list_all_records(
        collection=EMPLOYEES,
        filter_query=f'role = "{EmployeeRole.ADMIN}"',
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return {record["id"] for record in records}


async def get_department_director(*, department_id: str) -> Employee | None:
    """The active director of a department, or None if it has none."""
    record = await db_client.get_first_record(
        collection=EMPLOYEES,
        filter_query=(
            f'role = "{EmployeeRole.DIRECTOR}" && '
            f'department_id = "{sanitize_param(department_id)}" && '
            'is_active = "true"'
        ),
    )
    return Employee.model_validate(record) if record else None


async def deactivate_employee(*, employee_id: str) -> Employee:
    """Mark an employee as terminated."""
    record = await db_client.update_record(collection=EMPLOYEES, record_id=employee_id, data={"is_active": False})
    return Employee.model_validate(record)


# Tasks


async def create_task(*, task: TaskCreate) -> Task:
    """Create a task; INDIVIDUAL tasks start IN_PROGRESS, auctions start in BACKLOG."""
    with span("task_store.create_task"):
        data: dict[str, Any] = task.model_dump(exclude_none=True)
        data["status"] = TaskStatus.IN_PROGRESS if task.task_type == TaskType.INDIVIDUAL else TaskStatus.BACKLOG
        data["auction_has_bids"] = False

        record = await db_client.create_record(collection=TASKS, data=data)
        logger.info("Created task %s (%s, %s)", record["id"], task.task_type, task.mode)
        return Task.model_validate(record)


async def get_task(*, task_id: str) -> Task:
    """Fetch a task by ID.

    Raises:
        TaskNotFoundError: If the task does not exist
    """
    try:
        record = await db_client.get_record(collection=TASKS, record_id=task_id)
    except KeyError as e:
        raise TaskNotFoundError(f"Task not found: {task_id}", task_id=task_id) from e
    return Task.model_validate(record)


async def update_task(
    *,
    task_id: str,
    data: dict[str, Any],
    expected_status: TaskStatus | None = None,
) -> Task | None:
    """Apply a partial update, optionally only if the task is still in ``expected_status``.

    Returns:
        The updated task, or None if the task changed status first
    """
    filter_query = _status_filter(expected_status) if expected_status else ""
    record = await db_client.update_record_where(
        collection=TASKS,
        record_id=task_id,
        data=data,
        filter_query=filter_query,
    )
    return Task.model_validate(record) if record else None


async def get_auctions_to_close(*, now: datetime) -> list[Task]:
    """Backlog auctions past their planned end; their close condition may now hold."""
    records = await db_client.list_all_records(
        collection=TASKS,
        filter_query=(
            f"{_status_filter(TaskStatus.BACKLOG)} && "
            f'task_type != "{TaskType.INDIVIDUAL}" && '
            f'auction_planned_end_at <= "{to_db_timestamp(now)}"'
        ),
        sort="+auction_planned_end_at",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [Task.model_validate(record) for record in records]


async def get_reviews_to_expire(*, now: datetime) -> list[Task]:
    """Tasks under review whose review deadline has passed."""
    records = await db_client.list_all_records(
        collection=TASKS,
        filter_query=(
            f"{_status_filter(TaskStatus.UNDER_REVIEW)} && "
            "review_deadline != null && "
            f'review_deadline <= "{to_db_timestamp(now)}"'
        ),
        sort="+review_deadline",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [Task.model_validate(record) for record in records]


async def reopen_expired_review(*, task_id: str, now: datetime) -> Task | None:
    """Move a task back to IN_PROGRESS if it is still under a review that expired by ``now``."""
    record = await db_client.update_record_where(
        collection=TASKS,
        record_id=task_id,
        data={"status": TaskStatus.IN_PROGRESS, "review_deadline": None},
        filter_query=f'{_status_filter(TaskStatus.UNDER_REVIEW)} && review_deadline <= "{to_db_timestamp(now)}"',
    )
    return Task.model_validate(record) if record else None


async def list_tasks_by_executor(*, executor_id: str, statuses: Iterable[TaskStatus]) -> list[Task]:
    """Tasks executed by an employee in any of ``statuses``."""
    status_group = " || ".join(_status_filter(status) for status in statuses)
    records = await db_client.list_all_records(
        collection=TASKS,
        filter_query=f'executor_id = "{sanitize_param(executor_id)}" && ({status_group})',
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [Task.model_validate(record) for record in records]


async def close_auction(
    *,
    task_id: str,
    winner_id: str,
    winner_name: str,
    earned_value: AuctionValue,
    mode: TaskMode,
    end_at: datetime,
) -> Task:
    """Assign the winner and move the task to IN_PROGRESS if it is still in BACKLOG.

    The task's bids are deactivated in the same transaction.

    Raises:
        SettlementRaceError: If another writer already closed the auction
    """
    with span("task_store.close_auction"):
        data: dict[str, Any] = {
            "status": TaskStatus.IN_PROGRESS,
            "executor_id": winner_id,
            "executor_name": winner_name,
            "auction_winner_id": winner_id,
            "auction_winner_name": winner_name,
            "auction_end_at": end_at,
            "auction_has_bids": False,
        }
        if mode == TaskMode.TIME:
            data["earned_time_minutes"] = earned_value
        else:
            data["earned_money"] = earned_value

        async with db_client.transaction():
            record = await db_client.update_record_where(
                collection=TASKS,
                record_id=task_id,
                data=data,
                filter_query=_status_filter(TaskStatus.BACKLOG),
            )
            if record is None:
                raise SettlementRaceError(f"Auction {task_id} was already closed", task_id=task_id)

            deactivated = await deactivate_task_bids(task_id=task_id)

        logger.info("Closed auction %s, winner %s, bids deactivated: %d", task_id, winner_id, deactivated)
        return Task.model_validate(record)


async def start_task(*, task_id: str) -> Task:
    """Move a BACKLOG task with an executor to IN_PROGRESS and retire its bids.

    Raises:
        InvalidTransitionError: If the task left BACKLOG first
    """
    async with db_client.transaction():
        updated = await update_task(
            task_id=task_id,
            data={"status": TaskStatus.IN_PROGRESS, "auction_has_bids": False},
            expected_status=TaskStatus.BACKLOG,
        )
        if updated is None:
            raise InvalidTransitionError(
                f"Cannot start: task {task_id} is no longer {TaskStatus.BACKLOG}",
                task_id=task_id,
            )
        await deactivate_task_bids(task_id=task_id)
    return updated


# Bids


async def get_task_bids(*, task_id: str) -> list[AuctionBid]:
    """Active bids on a task."""
    records = await db_client.list_all_records(
        collection=BIDS,
        filter_query=f'task_id = "{sanitize_param(task_id)}" && is_active = "true"',
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [AuctionBid.model_validate(record) for record in records]


async def deactivate_task_bids(*, task_id: str) -> int:
    """Deactivate every active bid on a task that left BACKLOG."""
    return await db_client.update_records_where(
        collection=BIDS,
        data={"is_active": False},
        filter_query=f'task_id = "{sanitize_param(task_id)}" && is_active = "true"',
    )


async def insert_bid(
    *,
    task_id: str,
    bidder: Employee,
    value: AuctionValue,
    mode: TaskMode,
    frozen_price: AuctionValue | None,
    now: datetime,
    no_bid_grace: timedelta | None = None,
) -> AuctionBid:
    """Insert a bid and flag the task as having bids, if the auction is still open.

    ``frozen_price`` is None when the caller saw existing bids. Otherwise this
    is the first bid and the value is persisted as the task's current price.
    The task row is updated only if it still matches what the caller saw: in
    BACKLOG, started, the same bids flag, and not yet past its close time
    (the planned end with bids, the planned end plus ``no_bid_grace`` without).

    Raises:
        AuctionClosedError: If the auction closed or gained or lost its bids before the bid was written
    """
    with span("task_store.insert_bid"):
        bid_data: dict[str, Any] = {
            "created": now,
            "task_id": task_id,
            "bidder_id": bidder.id,
            "bidder_name": bidder.name,
            "bidder_rating": bidder.rating,
            "bidder_grade": bidder.grade,
            "bidder_points": bidder.points,
            "is_active": True,
        }
        if mode == TaskMode.TIME:
            bid_data["value_time_minutes"] = value
        else:
            bid_data["value_money"] = value

        first_bid = frozen_price is not None
        open_after = now
        task_update: dict[str, Any] = {"auction_has_bids": True}
        if first_bid:
            open_after = now - (no_bid_grace if no_bid_grace is not None else default_schedule().no_bid_grace)
            task_update["current_price"] = frozen_price

        filter_query = (
            f"{_status_filter(TaskStatus.BACKLOG)} && "
            f'auction_start_at <= "{to_db_timestamp(now)}" && '
            f'auction_has_bids = "{"false" if first_bid else "true"}" && '
            f'auction_planned_end_at > "{to_db_timestamp(open_after)}"'
        )

        async with db_client.transaction():
            updated = await db_client.update_record_where(
                collection=TASKS,
                record_id=task_id,
                data=task_update,
                filter_query=filter_query,
            )
            if updated is None:
                raise AuctionClosedError(f"Auction {task_id} is closed or changed before the bid", task_id=task_id)

            record = await db_client.create_record(collection=BIDS, data=bid_data)

        logger.info("Bid %s placed on task %s by %s: %s", record["id"], task_id, bidder.id, value)
        return AuctionBid.model_validate(record)


async def deactivate_employee_bids(*, employee_id: str) -> list[str]:
    """Deactivate every active bid of an employee and resync the affected auctions.

    Returns:
        IDs of the tasks whose bids changed
    """
    with span("task_store.deactivate_employee_bids"):
        async with db_client.transaction():
            bids = await db_client.list_all_records(
                collection=BIDS,
                filter_query=f'bidder_id = "{sanitize_param(employee_id)}" && is_active = "true"',
                per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            )
            task_ids = sorted({bid["task_id"] for bid in bids})
            if not task_ids:
                return []

            await db_client.update_records_where(
                collection=BIDS,
                data={"is_active": False},
                filter_query=f'bidder_id = "{sanitize_param(employee_id)}" && is_active = "true"',
            )

            for task_id in task_ids:
                remaining = await db_client.get_first_record(
                    collection=BIDS,
                    filter_query=f'task_id = "{task_id}" && is_active = "true"',
                )
                if remaining is None:
                    # Without live bids the auction resumes time-based pricing
                    await db_client.update_record_where(
                        collection=TASKS,
                        record_id=task_id,
                        data={"auction_has_bids": False, "current_price": None},
                        filter_query=_status_filter(TaskStatus.BACKLOG),
                    )

        logger.info("Deactivated bids of employee %s on tasks %s", employee_id, task_ids)
        return task_ids


# Points


async def _write_task_points(*, task: Task, base_points: int, penalty_hours: int) -> int:
    """Ledger rows plus employee total for a completed task. Must run inside a transaction."""
    if task.executor_id is None:
        msg = f"Task {task.id} has no executor to award points to"
        raise ValueError(msg)

    executor = await get_employee(employee_id=task.executor_id)
    penalty = penalty_points(penalty_hours)

    await _append_ledger(
        employee=executor,
        amount=base_points,
        tx_type=PointTransactionType.TASK_COMPLETION,
        task=task,
        comment=None,
    )
    if penalty > 0:
        await _append_ledger(
            employee=executor,
            amount=-penalty,
            tx_type=PointTransactionType.OVERDUE_PENALTY,
            task=task,
            comment=f"Overdue by {penalty_hours} working hours",
        )

    net = base_points - penalty
    await _apply_points(employee=executor, delta=net)
    return net


async def _append_ledger(
    *,
    employee: Employee,
    amount: int,
    tx_type: PointTransactionType,
    task: Task | None,
    comment: str | None,
) -> None:
    await db_client.create_record(
        collection=LEDGER,
        data={
            "employee_id": employee.id,
            "employee_name": employee.name,
            "amount": amount,
            "type": tx_type,
            "task_id": task.id if task else None,
            "task_title": task.title if task else None,
            "comment": comment,
        },
    )


async def _apply_points(*, employee: Employee, delta: int) -> None:
    current = await get_employee(employee_id=employee.id)
    new_total = current.points + delta
    await db_client.update_record(
        collection=EMPLOYEES,
        record_id=employee.id,
        data={"points": new_total, "grade": calculate_grade(new_total)},
    )


async def assign_points_for_task(*, task_id: str, base_points: int, penalty_hours: int) -> Task:
    """Award completion points for a DONE task that has none yet, in one transaction.

    Raises:
        InvalidTransitionError: If the task is not DONE or already has points
    """
    with span("task_store.assign_points_for_task"):
        net = base_points - penalty_points(penalty_hours)
        async with db_client.transaction():
            record = await db_client.update_record_where(
                collection=TASKS,
                record_id=task_id,
                data={"assigned_points": net},
                filter_query=f"{_status_filter(TaskStatus.DONE)} && assigned_points = null",
            )
            if record is None:
                raise InvalidTransitionError(
                    f"Cannot assign points: task {task_id} is not DONE or already has points",
                    task_id=task_id,
                )
            task = Task.model_validate(record)
            await _write_task_points(task=task, base_points=base_points, penalty_hours=penalty_hours)

        logger.info("Assigned %d points for task %s", net, task_id)
        return task


async def complete_task(*, task_id: str, done_at: datetime, base_points: int, penalty_hours: int) -> Task:
    """Move an UNDER_REVIEW task to DONE and write its points, all in one transaction.

    Raises:
        InvalidTransitionError: If the task left UNDER_REVIEW first
    """
    with span("task_store.complete_task"):
        net = base_points - penalty_points(penalty_hours)
        async with db_client.transaction():
            updated = await update_task(
                task_id=task_id,
                data={
                    "status": TaskStatus.DONE,
                    "done_at": done_at,
                    "review_deadline": None,
                    "assigned_points": net,
                },
                expected_status=TaskStatus.UNDER_REVIEW,
            )
            if updated is None:
                raise InvalidTransitionError(
                    f"Cannot complete: task {task_id} is no longer {TaskStatus.UNDER_REVIEW}",
                    task_id=task_id,
                )
            await _write_task_points(task=updated, base_points=base_points, penalty_hours=penalty_hours)

        logger.info("Completed task %s, net points %d", task_id, net)
        return updated


async def add_manual_points(*, task_id: str, points: int, comment: str | None) -> Task:
    """Award points by hand for a DONE task whose points were never assigned.

    Raises:
        InvalidTransitionError: If the task is not DONE, has no executor, or already has points
    """
    with span("task_store.add_manual_points"):
        async with db_client.transaction():
            updated = await db_client.update_record_where(
                collection=TASKS,
                record_id=task_id,
                data={"assigned_points": points},
                filter_query=f"{_status_filter(TaskStatus.DONE)} && assigned_points = null && executor_id != null",
            )
            if updated is None:
                raise InvalidTransitionError(
                    f"Cannot award points: task {task_id} is not a DONE task awaiting points",
                    task_id=task_id,
                )
            task = Task.model_validate(updated)
            executor = await get_employee(employee_id=task.executor_id)
            await _append_ledger(
                employee=executor,
                amount=points,
                tx_type=PointTransactionType.MANUAL_AWARD,
                task=task,
                comment=comment,
            )
            await _apply_points(employee=executor, delta=points)

        logger.info("Manually awarded %d points for task %s", points, task_id)
        return task


async def get_point_history(*, employee_id: str) -> list[PointTransaction]:
    """Ledger entries of an employee, newest first."""
    records = await db_client.list_records(
        collection=LEDGER,
        filter_query=f'employee_id = "{sanitize_param(employee_id)}"',
        sort="-created",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [PointTransaction.model_validate(record) for record in records]


# Comments


async def add_task_comment(*, task_id: str, author: Employee, content: str) -> TaskComment:
    """Attach a comment to a task."""
    record = await db_client.create_record(
        collection=COMMENTS,
        data={
            "task_id": task_id,
            "author_id": author.id,
            "author_name": author.name,
            "content": content,
        },
    )
    return TaskComment.model_validate(record)


async def get_task_comments(*, task_id: str) -> list[TaskComment]:
    """Comments on a task, oldest first."""
    records = await db_client.list_records(
        collection=COMMENTS,
        filter_query=f'task_id = "{sanitize_param(task_id)}"',
        sort="+created",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )
    return [TaskComment.model_validate(record) for record in records]
