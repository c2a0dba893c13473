"""Employee and point-ledger domain models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class EmployeeRole(StrEnum):
    """Employee position in the organisation."""

    ADMIN = "admin"
    DIRECTOR = "director"
    MANAGER = "manager"
    SENIOR = "senior"
    EMPLOYEE = "employee"


class Grade(StrEnum):
    """Coarse tier derived from accumulated points."""

    D = "D"
    C = "C"
    B = "B"
    A = "A"


GRADE_ORDER: tuple[Grade, ...] = (Grade.D, Grade.C, Grade.B, Grade.A)


def grade_rank(grade: Grade) -> int:
    """Position of a grade from lowest (0) to highest."""
    return GRADE_ORDER.index(Grade(grade))


def has_grade_access(employee_grade: Grade, minimum_grade: Grade) -> bool:
    """Whether an employee's grade meets a task's minimum grade."""
    return grade_rank(employee_grade) >= grade_rank(minimum_grade)


class Employee(BaseModel):
    """Employee data transfer object."""

    id: str = Field(..., description="Unique employee ID from database")
    name: str = Field(..., description="Display name")
    role: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE, description="Position in the organisation")
    department_id: str | None = Field(default=None, description="Department the employee belongs to")
    management_id: str | None = Field(default=None, description="Management the employee belongs to")
    division_id: str | None = Field(default=None, description="Division the employee belongs to")
    points: int = Field(default=0, description="Accumulated points")
    grade: Grade = Field(default=Grade.D, description="Grade derived from points")
    rating: str = Field(default="0", description="Rating snapshot copied onto bids")
    is_active: bool = Field(default=True, description="False once the employee is terminated")

    @property
    def is_admin(self) -> bool:
        return self.role == EmployeeRole.ADMIN

    @property
    def is_director(self) -> bool:
        return self.role == EmployeeRole.DIRECTOR


class PointTransactionType(StrEnum):
    """Reason for a ledger entry."""

    TASK_COMPLETION = "task_completion"
    OVERDUE_PENALTY = "overdue_penalty"
    MANUAL_AWARD = "manual_award"


class PointTransaction(BaseModel):
    """Immutable point-ledger entry."""

    id: str = Field(..., description="Unique ledger entry ID from database")
    created: datetime = Field(..., description="Creation timestamp")
    employee_id: str = Field(..., description="Employee whose points changed")
    employee_name: str = Field(..., description="Employee display name at the time")
    amount: int = Field(..., description="Signed point delta")
    type: PointTransactionType = Field(..., description="Reason for the entry")
    task_id: str | None = Field(default=None, description="Related task, if any")
    task_title: str | None = Field(default=None, description="Related task title at the time")
    comment: str | None = Field(default=None, description="Free-form explanation")
