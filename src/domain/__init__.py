"""Domain models and DTOs."""

from src.domain.bid import AuctionBid
from src.domain.create_models import EmployeeCreate, TaskCreate
from src.domain.employee import (
    Employee,
    EmployeeRole,
    Grade,
    PointTransaction,
    PointTransactionType,
    has_grade_access,
)
from src.domain.task import Task, TaskComment, TaskMode, TaskStatus, TaskType


__all__ = [
    "AuctionBid",
    "Employee",
    "EmployeeCreate",
    "EmployeeRole",
    "Grade",
    "PointTransaction",
    "PointTransactionType",
    "Task",
    "TaskComment",
    "TaskCreate",
    "TaskMode",
    "TaskStatus",
    "TaskType",
    "has_grade_access",
]
