"""Tests for the Engine facade: completion flow, task edits and goal lifecycle."""

from __future__ import annotations

import threading

import pytest

from clarity.engine import Engine
from clarity.errors import (
    BadInput,
    DependencyCycle,
    InvalidDependency,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
)
from clarity.progress import compute_progress
from clarity.reinforcement import ReinforcementType
from clarity.store import RecordStore
from clarity.tasks.model import Goal, GoalStatus, TaskStatus


# ═══════════════════════════════════════════════════════════════════
#  Completion
# ═══════════════════════════════════════════════════════════════════


class TestCompleteTask:
    def test_outcome_fields(self, engine, add_tasks, clock):
        add_tasks("a", "b", c=["a"])
        outcome = engine.complete_task("a")

        assert outcome.completed_task.status == TaskStatus.COMPLETED
        assert outcome.completed_task.completed_at == clock()
        assert outcome.goal_progress == 33
        assert outcome.milestone == 25
        assert outcome.next_task.id == "b"
        assert outcome.streak.current == 1
        assert outcome.streak.is_new_record is True
        assert outcome.reinforcement.type == ReinforcementType.MILESTONE
        assert "33" in outcome.reinforcement.message

    def test_progress_always_matches_tasks(self, engine, add_tasks):
        add_tasks("a", "b", "c", "d", "e", "f", "g")
        for tid in ["c", "a", "g"]:
            engine.complete_task(tid)
            goal = engine.get_goal("g1")
            assert goal.progress == compute_progress(engine.list_tasks("g1"))

    def test_milestone_sequence_through_engine(self, engine, add_tasks):
        add_tasks(*[str(i) for i in range(10)])
        milestones = [engine.complete_task(str(i)).milestone for i in range(10)]
        assert milestones == [None, None, 25, None, 50, None, None, 75, None, 100]

    def test_reaching_100_completes_goal_exactly_once(self, engine, add_tasks, clock):
        add_tasks("a", "b")
        engine.complete_task("a")
        assert engine.get_goal("g1").status == GoalStatus.ACTIVE
        engine.complete_task("b")
        stamped = engine.get_goal("g1").completed_at
        assert engine.get_goal("g1").status == GoalStatus.COMPLETED
        assert stamped == clock()

        clock.advance(hours=1)
        engine.update_task("b", status=TaskStatus.PENDING)
        engine.complete_task("b")
        assert engine.get_goal("g1").completed_at == stamped

    def test_streak_advances_once_per_day(self, engine, add_tasks, clock):
        add_tasks("a", "b", "c")
        assert engine.complete_task("a").streak.current == 1
        assert engine.complete_task("b").streak.is_new_record is False
        clock.advance(days=1)
        assert engine.complete_task("c").streak.current == 2
        assert engine.streak("u1") == (2, 2)

    def test_double_completion_is_harmless(self, engine, add_tasks):
        add_tasks("a", "b")
        engine.complete_task("a")
        again = engine.complete_task("a")
        assert again.milestone is None
        assert again.goal_progress == 50
        assert engine.history("u1").total_tasks_completed == 1

    def test_unknown_task(self, engine):
        with pytest.raises(NotFound):
            engine.complete_task("missing")

    def test_missing_user_is_precondition_failure(self, clock, config):
        store = RecordStore()
        with store.transaction() as txn:
            txn.put_goal(Goal(id="g1", user_id="ghost"))
        engine = Engine(store, config, clock=clock)
        engine.add_task("g1", "a", task_id="a")
        with pytest.raises(PreconditionFailed):
            engine.complete_task("a")

    def test_failure_leaves_state_untouched(self, engine, add_tasks, monkeypatch):
        add_tasks("a", "b")

        def boom(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(engine.streaks, "record_completion", boom)
        with pytest.raises(RuntimeError):
            engine.complete_task("a")

        assert engine.get_task("a").status == TaskStatus.PENDING
        assert engine.get_goal("g1").progress == 0
        assert engine.milestones.memory.get("g1") == 0
        assert engine.streak("u1") == (0, 0)

    def test_completion_records_daily_activity(self, engine, add_tasks, clock):
        add_tasks("a", "b", "c")
        engine.complete_task("a")
        engine.complete_task("b")
        clock.advance(days=1)
        engine.complete_task("c")
        h = engine.history("u1")
        assert h.total_tasks_completed == 3
        assert [r.tasks_completed for r in h.records] == [1, 2]
        assert h.average_tasks_per_day == 2
        assert h.total_goals_completed == 1


class TestConcurrency:
    def test_parallel_completions_converge(self, engine):
        ids = [f"t{i}" for i in range(20)]
        for tid in ids:
            engine.add_task("g1", tid, task_id=tid)

        barrier = threading.Barrier(len(ids))
        errors: list[Exception] = []

        def worker(tid: str) -> None:
            barrier.wait()
            try:
                engine.complete_task(tid)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(tid,)) for tid in ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        goal = engine.get_goal("g1")
        assert goal.progress == 100
        assert goal.status == GoalStatus.COMPLETED
        assert engine.streak("u1") == (1, 1)
        assert engine.history("u1").total_tasks_completed == 20

    def test_parallel_plan_starts_create_one_plan(self, engine):
        plans = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            plans.append(engine.start_daily_plan("u1").id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(plans)) == 1
        assert engine.store.count("plans") == 1


# ═══════════════════════════════════════════════════════════════════
#  Next task
# ═══════════════════════════════════════════════════════════════════


class TestGetNextTask:
    def test_view(self, engine, add_tasks):
        add_tasks("a", b=["a"])
        view = engine.get_next_task("g1")
        assert view.task.id == "a"
        assert (view.position, view.total_tasks, view.goal_progress) == (1, 2, 0)

    def test_all_done(self, engine, add_tasks):
        add_tasks("a")
        engine.complete_task("a")
        view = engine.get_next_task("g1")
        assert view.task is None
        assert view.goal_progress == 100

    def test_deleted_goal(self, engine):
        engine.soft_delete_goal("g1")
        with pytest.raises(NotFound):
            engine.get_next_task("g1")


# ═══════════════════════════════════════════════════════════════════
#  Creation and edits
# ═══════════════════════════════════════════════════════════════════


class TestCreation:
    def test_goal_requires_user(self, engine):
        with pytest.raises(PreconditionFailed):
            engine.create_goal("ghost", "Nope")

    def test_duplicate_user(self, engine):
        with pytest.raises(BadInput):
            engine.create_user("again", user_id="u1")

    def test_goal_sort_order_appends(self, engine):
        second = engine.create_goal("u1", "Second")
        assert second.sort_order == 1
        assert [g.title for g in engine.list_goals("u1")] == ["Ship it", "Second"]

    def test_task_sort_order_appends(self, engine, add_tasks):
        add_tasks("a", "b")
        assert [t.sort_order for t in engine.list_tasks("g1")] == [0, 1]

    def test_add_task_to_missing_goal(self, engine):
        with pytest.raises(NotFound):
            engine.add_task("nope", "x")

    def test_dependency_must_be_sibling(self, engine):
        engine.create_goal("u1", "Other", goal_id="g2")
        engine.add_task("g2", "x", task_id="x")
        with pytest.raises(InvalidDependency):
            engine.add_task("g1", "a", depends_on=["x"])

    def test_cycle_rejected_on_edit(self, engine, add_tasks):
        add_tasks("a", b=["a"])
        with pytest.raises(DependencyCycle):
            engine.set_dependencies("a", ["b"])
        assert engine.get_task("a").depends_on == []

    def test_adding_task_lowers_progress(self, engine, add_tasks):
        add_tasks("a", "b")
        engine.complete_task("a")
        engine.add_task("g1", "c", task_id="c")
        assert engine.get_goal("g1").progress == 33
        assert engine.milestones.memory.get("g1") == 33
        assert engine.complete_task("b").milestone == 50


class TestUpdateTask:
    def test_fields(self, engine, add_tasks):
        add_tasks("a")
        out = engine.update_task("a", title="Renamed", estimated_minutes=90, sort_order=5)
        assert out.task.title == "Renamed"
        assert engine.get_task("a").estimated_minutes == 90
        assert engine.get_task("a").sort_order == 5

    def test_status_completed_goes_through_completion(self, engine, add_tasks):
        add_tasks("a", "b")
        out = engine.update_task("a", status=TaskStatus.COMPLETED)
        assert out.goal_progress == 50
        assert out.milestone == 25
        assert engine.streak("u1") == (1, 1)

    def test_reopen_clears_completed_at(self, engine, add_tasks):
        add_tasks("a", "b")
        engine.complete_task("a")
        out = engine.update_task("a", status=TaskStatus.PENDING)
        assert out.task.completed_at is None
        assert out.goal_progress == 0

    def test_schedule_and_unschedule(self, engine, add_tasks, clock):
        add_tasks("a")
        engine.schedule_task("a", clock().date(), "14:00", 45)
        assert engine.get_task("a").schedule.duration_minutes == 45
        assert engine.unschedule_task("a").schedule is None
        assert engine.get_task("a").schedule is None

    def test_skip(self, engine, add_tasks):
        add_tasks("a", "b")
        engine.skip_task("a")
        assert engine.get_next_task("g1").task.id == "b"


class TestGoalLifecycle:
    def test_archive_evicts_milestones(self, engine, add_tasks):
        add_tasks("a", "b")
        engine.complete_task("a")
        goal = engine.archive_goal("g1")
        assert goal.status == GoalStatus.ARCHIVED
        assert engine.milestones.memory.get("g1") is None
        assert engine.list_goals("u1", GoalStatus.ACTIVE) == []

    def test_archive_twice(self, engine):
        engine.archive_goal("g1")
        with pytest.raises(InvalidTransition):
            engine.archive_goal("g1")


def test_history_window(engine, add_tasks, clock):
    add_tasks("a", "b")
    engine.complete_task("a")
    clock.advance(days=40)
    engine.complete_task("b")
    assert engine.history("u1", days=30).total_tasks_completed == 1
    assert engine.history("u1", days=60).total_tasks_completed == 2
