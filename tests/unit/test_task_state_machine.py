"""Unit tests for the task lifecycle state machine."""

from datetime import timedelta

import pytest

from src.core.errors import InvalidTransitionError, MissingGuardPreconditionError, TransitionPermissionError
from src.domain.employee import EmployeeRole, Grade, PointTransactionType
from src.domain.task import TaskStatus
from src.modules.tasks import state_machine, store
from tests.unit.builders import CALENDAR, build_employee, build_task, local


NOW = local(2024, 1, 2, 11)

EXECUTOR = build_employee(id="300", name="Executor")
CREATOR = build_employee(id="100", name="Creator")
DIRECTOR = build_employee(id="400", role=EmployeeRole.DIRECTOR)
OTHER_DIRECTOR = build_employee(id="401", role=EmployeeRole.DIRECTOR, department_id="dept-2")
ADMIN = build_employee(id="1", role=EmployeeRole.ADMIN, department_id=None)
BYSTANDER = build_employee(id="500")


@pytest.mark.unit
class TestTransitionTable:
    """Tests for the allowed status changes."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (TaskStatus.BACKLOG, TaskStatus.IN_PROGRESS),
            (TaskStatus.IN_PROGRESS, TaskStatus.UNDER_REVIEW),
            (TaskStatus.UNDER_REVIEW, TaskStatus.IN_PROGRESS),
            (TaskStatus.UNDER_REVIEW, TaskStatus.DONE),
        ],
    )
    def test_allowed(self, current, target):
        """Test the four lifecycle edges."""
        assert state_machine.can_transition(current, target) is True

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (TaskStatus.BACKLOG, TaskStatus.DONE),
            (TaskStatus.IN_PROGRESS, TaskStatus.DONE),
            (TaskStatus.DONE, TaskStatus.IN_PROGRESS),
            (TaskStatus.DONE, TaskStatus.BACKLOG),
        ],
    )
    def test_rejected(self, current, target):
        """Test that skipping review and leaving DONE are impossible."""
        assert state_machine.can_transition(current, target) is False
        with pytest.raises(InvalidTransitionError):
            state_machine.check_transition(build_task(status=current, executor_id="300"), target, actor=ADMIN, now=NOW)


@pytest.mark.unit
class TestGuards:
    """Tests for check_transition guards."""

    def test_start_requires_executor(self):
        """Test that a BACKLOG task without executor cannot start."""
        with pytest.raises(MissingGuardPreconditionError):
            state_machine.check_transition(build_task(), TaskStatus.IN_PROGRESS, actor=ADMIN, now=NOW)

    @pytest.mark.parametrize("actor", [EXECUTOR, DIRECTOR, ADMIN])
    def test_start_allowed_actors(self, actor):
        """Test that executor, department director and admin may start."""
        task = build_task(executor_id="300")
        state_machine.check_transition(task, TaskStatus.IN_PROGRESS, actor=actor, now=NOW)

    @pytest.mark.parametrize("actor", [BYSTANDER, OTHER_DIRECTOR])
    def test_start_rejected_actors(self, actor):
        """Test that other employees and other departments' directors may not start."""
        task = build_task(executor_id="300")
        with pytest.raises(TransitionPermissionError):
            state_machine.check_transition(task, TaskStatus.IN_PROGRESS, actor=actor, now=NOW)

    def test_submit_only_by_executor_or_admin(self):
        """Test that even the director cannot submit on the executor's behalf."""
        task = build_task(status=TaskStatus.IN_PROGRESS, executor_id="300")

        state_machine.check_transition(task, TaskStatus.UNDER_REVIEW, actor=EXECUTOR, now=NOW)
        state_machine.check_transition(task, TaskStatus.UNDER_REVIEW, actor=ADMIN, now=NOW)
        with pytest.raises(TransitionPermissionError):
            state_machine.check_transition(task, TaskStatus.UNDER_REVIEW, actor=DIRECTOR, now=NOW)

    @pytest.mark.parametrize("comment", [None, "", "   "])
    def test_return_requires_comment(self, comment):
        """Test that returning to work needs a non-blank comment."""
        task = build_task(status=TaskStatus.UNDER_REVIEW, executor_id="300")
        with pytest.raises(MissingGuardPreconditionError):
            state_machine.check_transition(task, TaskStatus.IN_PROGRESS, actor=CREATOR, now=NOW, comment=comment)

    def test_return_not_by_executor(self):
        """Test that the executor cannot send their own work back."""
        task = build_task(status=TaskStatus.UNDER_REVIEW, executor_id="300")
        with pytest.raises(TransitionPermissionError):
            state_machine.check_transition(task, TaskStatus.IN_PROGRESS, actor=EXECUTOR, now=NOW, comment="redo")

    @pytest.mark.parametrize("actor", [EXECUTOR, CREATOR, OTHER_DIRECTOR])
    def test_complete_only_by_director_or_admin(self, actor):
        """Test that only the department director or an admin accepts work."""
        task = build_task(status=TaskStatus.UNDER_REVIEW, executor_id="300", review_deadline=NOW + timedelta(hours=1))
        with pytest.raises(TransitionPermissionError):
            state_machine.check_transition(task, TaskStatus.DONE, actor=actor, now=NOW)

    def test_complete_after_review_expired(self):
        """Test that an expired review can no longer be accepted."""
        task = build_task(status=TaskStatus.UNDER_REVIEW, executor_id="300", review_deadline=NOW - timedelta(minutes=1))
        with pytest.raises(InvalidTransitionError, match="expired"):
            state_machine.check_transition(task, TaskStatus.DONE, actor=DIRECTOR, now=NOW)


@pytest.fixture
async def people(employee_factory):
    """Stored creator, director, executor and admin of one department."""
    return {
        "director": await employee_factory(name="Director", role=EmployeeRole.DIRECTOR),
        "executor": await employee_factory(name="Executor", points=50),
        "creator": await employee_factory(name="Creator", role=EmployeeRole.MANAGER),
        "admin": await employee_factory(name="Admin", role=EmployeeRole.ADMIN, department_id=None),
    }


@pytest.mark.unit
class TestLifecycle:
    """Tests for the storage-backed transitions."""

    async def test_individual_task_starts_in_progress(self, people, individual_task_factory):
        """Test that INDIVIDUAL tasks skip the backlog."""
        task = await individual_task_factory(creator=people["creator"], executor=people["executor"])

        assert task.status == TaskStatus.IN_PROGRESS
        assert task.auction_start_at is None

    async def test_submit_sets_review_deadline(self, people, individual_task_factory):
        """Test that submitting starts a 48 working-hour review window."""
        task = await individual_task_factory(creator=people["creator"], executor=people["executor"])

        updated = await state_machine.submit_for_review(
            task_id=task.id,
            actor_id=people["executor"].id,
            now=local(2024, 1, 1, 10),
            calendar=CALENDAR,
        )

        assert updated.status == TaskStatus.UNDER_REVIEW
        assert updated.review_deadline == local(2024, 1, 8, 13)

    async def test_return_to_work_records_comment(self, people, individual_task_factory):
        """Test that returning clears the review clock and keeps the reviewer's comment."""
        task = await individual_task_factory(creator=people["creator"], executor=people["executor"])
        await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        updated = await state_machine.return_to_work(
            task_id=task.id,
            actor_id=people["creator"].id,
            comment="  Missing the appendix  ",
            now=NOW + timedelta(hours=1),
        )

        assert updated.status == TaskStatus.IN_PROGRESS
        assert updated.review_deadline is None
        comments = await store.get_task_comments(task_id=task.id)
        assert [(c.author_id, c.content) for c in comments] == [(people["creator"].id, "Missing the appendix")]

    async def test_complete_on_time_awards_base_points(self, people, individual_task_factory):
        """Test that an on-time completion awards the grade's base points only."""
        task = await individual_task_factory(
            creator=people["creator"],
            executor=people["executor"],
            minimum_grade=Grade.C,
            deadline=local(2024, 1, 5, 18),
        )
        await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        done = await state_machine.complete_task(
            task_id=task.id,
            actor_id=people["director"].id,
            now=NOW + timedelta(hours=2),
            calendar=CALENDAR,
        )

        assert done.status == TaskStatus.DONE
        assert done.done_at == NOW + timedelta(hours=2)
        assert done.review_deadline is None
        assert done.assigned_points == 15

        executor = await store.get_employee(employee_id=people["executor"].id)
        assert (executor.points, executor.grade) == (65, Grade.C)
        history = await store.get_point_history(employee_id=executor.id)
        assert [(tx.amount, tx.type) for tx in history] == [(15, PointTransactionType.TASK_COMPLETION)]

    async def test_complete_late_subtracts_penalty(self, people, individual_task_factory):
        """Test that each started late working hour costs a point."""
        task = await individual_task_factory(
            creator=people["creator"],
            executor=people["executor"],
            deadline=local(2024, 1, 2, 10),
        )
        await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        done = await state_machine.complete_task(
            task_id=task.id,
            actor_id=people["admin"].id,
            now=local(2024, 1, 2, 12, 30),
            calendar=CALENDAR,
        )

        assert done.assigned_points == 10 - 3
        history = await store.get_point_history(employee_id=people["executor"].id)
        assert sorted((tx.amount, tx.type) for tx in history) == [
            (-3, PointTransactionType.OVERDUE_PENALTY),
            (10, PointTransactionType.TASK_COMPLETION),
        ]
        assert (await store.get_employee(employee_id=people["executor"].id)).points == 57

    async def test_complete_twice_is_rejected(self, people, individual_task_factory):
        """Test that DONE is terminal and points are written once."""
        task = await individual_task_factory(creator=people["creator"], executor=people["executor"])
        await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)
        await state_machine.complete_task(task_id=task.id, actor_id=people["director"].id, now=NOW)

        with pytest.raises(InvalidTransitionError):
            await state_machine.complete_task(task_id=task.id, actor_id=people["director"].id, now=NOW)

        assert len(await store.get_point_history(employee_id=people["executor"].id)) == 1

    @pytest.mark.parametrize("failing_step", ["_append_ledger", "_apply_points"])
    async def test_points_write_failure_rolls_back_completion(
        self, people, individual_task_factory, monkeypatch, failing_step
    ):
        """Test that a failed ledger or balance write leaves the task under review with no points."""
        task = await individual_task_factory(
            creator=people["creator"],
            executor=people["executor"],
            deadline=local(2024, 1, 2, 10),
        )
        await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        async def broken_write(**kwargs):
            msg = "database is locked"
            raise RuntimeError(msg)

        monkeypatch.setattr(store, failing_step, broken_write)

        with pytest.raises(RuntimeError, match="database is locked"):
            await state_machine.complete_task(
                task_id=task.id,
                actor_id=people["director"].id,
                now=local(2024, 1, 2, 12, 30),
                calendar=CALENDAR,
            )

        stored = await store.get_task(task_id=task.id)
        assert stored.status == TaskStatus.UNDER_REVIEW
        assert stored.assigned_points is None
        assert stored.done_at is None
        assert stored.review_deadline is not None
        assert await store.get_point_history(employee_id=people["executor"].id) == []
        assert (await store.get_employee(employee_id=people["executor"].id)).points == 50

    async def test_permission_error_leaves_task_untouched(self, people, individual_task_factory):
        """Test that guards run before any write."""
        task = await individual_task_factory(creator=people["creator"], executor=people["executor"])
        await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        with pytest.raises(TransitionPermissionError):
            await state_machine.complete_task(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        assert (await store.get_task(task_id=task.id)).status == TaskStatus.UNDER_REVIEW

    async def test_start_backlog_task_with_executor(self, people, auction_factory):
        """Test that a BACKLOG task given an executor can be started and drops its bids."""
        task = await auction_factory(creator=people["creator"])
        await store.update_task(
            task_id=task.id,
            data={"executor_id": people["executor"].id, "executor_name": people["executor"].name},
        )

        started = await state_machine.start_task(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        assert started.status == TaskStatus.IN_PROGRESS
        assert started.auction_has_bids is False

    async def test_expire_review(self, people, individual_task_factory):
        """Test that an expired review goes back to work without a comment."""
        task = await individual_task_factory(creator=people["creator"], executor=people["executor"])
        submitted = await state_machine.submit_for_review(task_id=task.id, actor_id=people["executor"].id, now=NOW)

        assert await state_machine.expire_review(task=submitted, now=submitted.review_deadline - timedelta(seconds=1)) is None

        reopened = await state_machine.expire_review(task=submitted, now=submitted.review_deadline)
        assert reopened is not None
        assert reopened.status == TaskStatus.IN_PROGRESS
        assert reopened.review_deadline is None
        assert await store.get_task_comments(task_id=task.id) == []

        assert await state_machine.expire_review(task=submitted, now=submitted.review_deadline) is None
