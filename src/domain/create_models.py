"""Pydantic models for creating records in database."""

from datetime import datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

from src.domain.employee import EmployeeRole, Grade
from src.domain.task import TaskMode, TaskType


class EmployeeCreate(BaseModel):
    """Pydantic model for creating an employee record."""

    name: str = Field(..., min_length=1, description="Display name")
    role: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE, description="Position in the organisation")
    department_id: str | None = Field(default=None, description="Department the employee belongs to")
    management_id: str | None = Field(default=None, description="Management the employee belongs to")
    division_id: str | None = Field(default=None, description="Division the employee belongs to")
    points: int = Field(default=0, description="Starting points")
    rating: str = Field(default="0", description="Initial rating")


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record.

    INDIVIDUAL tasks carry an executor and no auction fields. Auctioned tasks
    carry an auction window and exactly the base value matching their mode.
    """

    title: str = Field(..., min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    task_type: TaskType = Field(..., description="INDIVIDUAL, UNIT or DEPARTMENT")
    mode: TaskMode = Field(default=TaskMode.MONEY, description="MONEY or TIME")
    department_id: str = Field(..., description="Owning department")
    management_id: str | None = Field(default=None, description="Owning management, if any")
    division_id: str | None = Field(default=None, description="Owning division, if any")
    creator_id: str = Field(..., description="Employee who created the task")
    creator_name: str = Field(..., description="Creator display name")
    executor_id: str | None = Field(default=None, description="Executor for INDIVIDUAL tasks")
    executor_name: str | None = Field(default=None, description="Executor display name")
    minimum_grade: Grade = Field(default=Grade.D, description="Lowest grade allowed to bid")
    deadline: datetime = Field(..., description="Hard completion deadline")
    auction_start_at: datetime | None = Field(default=None, description="When bidding opens")
    auction_planned_end_at: datetime | None = Field(default=None, description="When bidding closes")
    base_price: Decimal | None = Field(default=None, gt=0, description="Starting value in MONEY mode")
    base_time_minutes: int | None = Field(default=None, gt=0, description="Starting value in TIME mode")

    @model_validator(mode="after")
    def validate_allocation(self) -> Self:
        """Check executor, auction window and base value against task type and mode."""
        if self.task_type == TaskType.INDIVIDUAL:
            if not self.executor_id:
                msg = "INDIVIDUAL tasks require an executor"
                raise ValueError(msg)
            if self.auction_start_at or self.auction_planned_end_at:
                msg = "INDIVIDUAL tasks cannot have an auction window"
                raise ValueError(msg)
            if self.base_price is not None or self.base_time_minutes is not None:
                msg = "INDIVIDUAL tasks cannot have an auction base value"
                raise ValueError(msg)
            return self

        if self.executor_id:
            msg = "Auctioned tasks are assigned by settlement, not at creation"
            raise ValueError(msg)
        if self.auction_start_at is None or self.auction_planned_end_at is None:
            msg = "Auctioned tasks require an auction window"
            raise ValueError(msg)
        if self.auction_planned_end_at <= self.auction_start_at:
            msg = "Auction must end after it starts"
            raise ValueError(msg)

        if self.mode == TaskMode.MONEY:
            if self.base_price is None or self.base_time_minutes is not None:
                msg = "MONEY auctions require base_price only"
                raise ValueError(msg)
        elif self.base_time_minutes is None or self.base_price is not None:
            msg = "TIME auctions require base_time_minutes only"
            raise ValueError(msg)

        if self.task_type == TaskType.UNIT and not self.division_id:
            msg = "UNIT tasks require a division"
            raise ValueError(msg)
        return self
