"""Pytest configuration and fixtures for unit tests."""

import uuid
from collections.abc import Awaitable, Callable
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from src.domain.create_models import EmployeeCreate, TaskCreate
from src.domain.employee import Employee
from src.domain.task import Task, TaskType
from src.modules.tasks import store
from tests.unit.builders import AUCTION_END, AUCTION_START


EmployeeFactory = Callable[..., Awaitable[Employee]]
TaskFactory = Callable[..., Awaitable[Task]]


@pytest.fixture
def employee_factory(sqlite_db: Path) -> EmployeeFactory:
    """Factory for stored employees.

    Usage:
        bidder = await employee_factory(name="Bidder", points=60)
    """

    async def _create_employee(**kwargs: Any) -> Employee:
        data: dict[str, Any] = {
            "name": f"Employee {uuid.uuid4().hex[:8]}",
            "department_id": "dept-1",
            "division_id": "div-1",
        }
        data.update(kwargs)
        return await store.create_employee(employee=EmployeeCreate(**data))

    return _create_employee


@pytest.fixture
def auction_factory(sqlite_db: Path) -> TaskFactory:
    """Factory for stored auctions (100.00 MONEY, open 10:00-20:00 local on Monday 2024-01-01).

    Usage:
        task = await auction_factory(creator=creator, mode=TaskMode.TIME, base_price=None, base_time_minutes=60)
    """

    async def _create_auction(*, creator: Employee, **kwargs: Any) -> Task:
        data: dict[str, Any] = {
            "title": f"Auction {uuid.uuid4().hex[:8]}",
            "task_type": TaskType.DEPARTMENT,
            "department_id": creator.department_id,
            "division_id": creator.division_id,
            "creator_id": creator.id,
            "creator_name": creator.name,
            "deadline": AUCTION_END + timedelta(days=4),
            "auction_start_at": AUCTION_START,
            "auction_planned_end_at": AUCTION_END,
            "base_price": Decimal("100.00"),
        }
        data.update(kwargs)
        return await store.create_task(task=TaskCreate(**data))

    return _create_auction


@pytest.fixture
def individual_task_factory(sqlite_db: Path) -> TaskFactory:
    """Factory for stored INDIVIDUAL tasks, which start IN_PROGRESS.

    Usage:
        task = await individual_task_factory(creator=director, executor=worker, deadline=...)
    """

    async def _create_task(*, creator: Employee, executor: Employee, **kwargs: Any) -> Task:
        data: dict[str, Any] = {
            "title": f"Task {uuid.uuid4().hex[:8]}",
            "task_type": TaskType.INDIVIDUAL,
            "department_id": creator.department_id,
            "division_id": creator.division_id,
            "creator_id": creator.id,
            "creator_name": creator.name,
            "executor_id": executor.id,
            "executor_name": executor.name,
            "deadline": AUCTION_END + timedelta(days=4),
        }
        data.update(kwargs)
        return await store.create_task(task=TaskCreate(**data))

    return _create_task
