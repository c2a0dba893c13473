"""Who may see and bid on an auction."""

from pydantic import BaseModel, Field

from src.core.errors import BidNotAllowedError
from src.domain.employee import Employee, Grade, has_grade_access
from src.domain.task import Task, TaskStatus, TaskType


class BidEligibility(BaseModel):
    """Outcome of an eligibility check."""

    allowed: bool = Field(..., description="Whether the employee may bid")
    reason: str | None = Field(default=None, description="Why bidding is not allowed")
    employee_grade: Grade | None = Field(default=None, description="Grade the check used")
    minimum_grade: Grade | None = Field(default=None, description="Minimum grade of the task")


def evaluate_auction_visibility(task: Task, employee: Employee) -> BidEligibility:
    """Whether the auction is open to the employee's part of the organisation."""
    if employee.is_admin:
        return BidEligibility(allowed=False, reason="Administrators do not take part in auctions")

    if not employee.department_id or employee.department_id != task.department_id:
        return BidEligibility(allowed=False, reason="Only employees of the task's department may bid")

    if task.task_type == TaskType.UNIT and task.division_id and employee.division_id != task.division_id:
        return BidEligibility(allowed=False, reason="Only employees of the task's division may bid")

    return BidEligibility(allowed=True)


def evaluate_bid_eligibility(task: Task, employee: Employee) -> BidEligibility:
    """Full eligibility check for placing a bid on ``task``."""
    if not task.is_auction:
        return BidEligibility(allowed=False, reason="Individual tasks are not auctioned")

    if task.status != TaskStatus.BACKLOG:
        return BidEligibility(allowed=False, reason="Bids are accepted only while the task is in backlog")

    if not employee.is_active:
        return BidEligibility(allowed=False, reason="Terminated employees cannot bid")

    if employee.is_admin:
        return BidEligibility(allowed=False, reason="Administrators cannot bid")

    if employee.id == task.creator_id:
        return BidEligibility(allowed=False, reason="The task creator cannot bid")

    visibility = evaluate_auction_visibility(task, employee)
    if not visibility.allowed:
        return visibility

    if not has_grade_access(employee.grade, task.minimum_grade):
        return BidEligibility(
            allowed=False,
            reason=f"Bids require grade {task.minimum_grade}, employee grade is {employee.grade}",
            employee_grade=employee.grade,
            minimum_grade=task.minimum_grade,
        )

    return BidEligibility(allowed=True, employee_grade=employee.grade, minimum_grade=task.minimum_grade)


def check_bid_eligibility(task: Task, employee: Employee) -> None:
    """Raise if the employee may not bid on the task.

    Raises:
        BidNotAllowedError: With the reason the employee is excluded
    """
    result = evaluate_bid_eligibility(task, employee)
    if not result.allowed:
        raise BidNotAllowedError(result.reason or "Bidding not allowed", task_id=task.id)
