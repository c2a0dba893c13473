"""Task domain models and enums."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.employee import Grade


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    BACKLOG = "BACKLOG"
    IN_PROGRESS = "IN_PROGRESS"
    UNDER_REVIEW = "UNDER_REVIEW"
    DONE = "DONE"


class TaskType(StrEnum):
    """How the executor of a task is chosen."""

    INDIVIDUAL = "INDIVIDUAL"  # Assigned directly, never auctioned
    UNIT = "UNIT"  # Auctioned within the creator's division
    DEPARTMENT = "DEPARTMENT"  # Auctioned across the whole department


class TaskMode(StrEnum):
    """Unit of value exchanged for a task."""

    MONEY = "MONEY"
    TIME = "TIME"


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: datetime = Field(..., description="Creation timestamp")
    updated: datetime = Field(..., description="Last update timestamp")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    status: TaskStatus = Field(default=TaskStatus.BACKLOG, description="Current lifecycle state")
    task_type: TaskType = Field(..., description="INDIVIDUAL, UNIT or DEPARTMENT")
    mode: TaskMode = Field(default=TaskMode.MONEY, description="MONEY or TIME")
    department_id: str = Field(..., description="Owning department")
    management_id: str | None = Field(default=None, description="Owning management, if any")
    division_id: str | None = Field(default=None, description="Owning division, if any")
    creator_id: str = Field(..., description="Employee who created the task")
    creator_name: str = Field(..., description="Creator display name")
    executor_id: str | None = Field(default=None, description="Employee executing the task")
    executor_name: str | None = Field(default=None, description="Executor display name")
    minimum_grade: Grade = Field(default=Grade.D, description="Lowest grade allowed to bid")
    deadline: datetime = Field(..., description="Hard completion deadline")
    auction_start_at: datetime | None = Field(default=None, description="When bidding opened")
    auction_planned_end_at: datetime | None = Field(default=None, description="When bidding is scheduled to close")
    auction_end_at: datetime | None = Field(default=None, description="When the auction was actually settled")
    auction_has_bids: bool = Field(default=False, description="Whether at least one active bid exists")
    auction_winner_id: str | None = Field(default=None, description="Employee the auction was settled to")
    auction_winner_name: str | None = Field(default=None, description="Winner display name")
    base_price: Decimal | None = Field(default=None, description="Starting value in MONEY mode")
    base_time_minutes: int | None = Field(default=None, description="Starting value in TIME mode")
    current_price: Decimal | None = Field(default=None, description="Auction value frozen by the latest bid")
    earned_money: Decimal | None = Field(default=None, description="Value owed to the executor (MONEY)")
    earned_time_minutes: int | None = Field(default=None, description="Value owed to the executor (TIME)")
    review_deadline: datetime | None = Field(default=None, description="When a pending review expires")
    done_at: datetime | None = Field(default=None, description="When the task was accepted")
    assigned_points: int | None = Field(default=None, description="Net points awarded on completion")

    @property
    def is_auction(self) -> bool:
        """Whether the task is allocated by auction."""
        return self.task_type != TaskType.INDIVIDUAL


class TaskComment(BaseModel):
    """Comment attached to a task, e.g. the reason it was returned to work."""

    id: str = Field(..., description="Unique comment ID from database")
    created: datetime = Field(..., description="Creation timestamp")
    task_id: str = Field(..., description="Task the comment belongs to")
    author_id: str = Field(..., description="Employee who wrote the comment")
    author_name: str = Field(..., description="Author display name")
    content: str = Field(..., description="Comment text")
