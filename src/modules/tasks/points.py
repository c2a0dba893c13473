"""Point awards, overdue penalties and grade thresholds."""

from src.core.config import constants, settings
from src.domain.employee import Grade


def calculate_grade(points: int) -> Grade:
    """Grade earned by an accumulated point total."""
    if points < constants.GRADE_THRESHOLD_C:
        return Grade.D
    if points < constants.GRADE_THRESHOLD_B:
        return Grade.C
    if points < constants.GRADE_THRESHOLD_A:
        return Grade.B
    return Grade.A


def points_to_next_grade(points: int) -> tuple[Grade, Grade | None, int]:
    """Current grade, the next grade (None at the top) and points still missing."""
    grade = calculate_grade(points)
    thresholds = {
        Grade.C: constants.GRADE_THRESHOLD_C,
        Grade.B: constants.GRADE_THRESHOLD_B,
        Grade.A: constants.GRADE_THRESHOLD_A,
    }
    next_grade = {Grade.D: Grade.C, Grade.C: Grade.B, Grade.B: Grade.A}.get(grade)
    if next_grade is None:
        return grade, None, 0
    return grade, next_grade, max(0, thresholds[next_grade] - points)


def base_points_for_grade(minimum_grade: Grade) -> int:
    """Points awarded for completing a task gated at ``minimum_grade``."""
    try:
        return settings.base_points_by_grade[Grade(minimum_grade).value]
    except KeyError as e:
        msg = f"No base points configured for grade {minimum_grade}"
        raise ValueError(msg) from e


def penalty_points(penalty_hours: int) -> int:
    """Points deducted for ``penalty_hours`` late working hours."""
    return max(0, penalty_hours) * settings.penalty_points_per_hour
