"""Contract tests for the records persisted by the store."""

from __future__ import annotations

from dataclasses import fields
from datetime import date, datetime, timezone

from clarity.tasks.model import (
    DailyActivity,
    DailyPlan,
    Goal,
    PlanStatus,
    Schedule,
    Task,
    TaskStatus,
    Tombstone,
    User,
    activity_key,
)

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def test_task_defaults() -> None:
    task = Task(id="t1", goal_id="g1")
    assert task.status == TaskStatus.PENDING
    assert task.depends_on == []
    assert task.is_deleted is False
    assert task.deleted_at is None


def test_tombstone_carries_batch_id() -> None:
    names = {f.name for f in fields(Tombstone)}
    assert names == {"deleted_at", "batch_id"}
    task = Task(id="t1", goal_id="g1", tombstone=Tombstone(NOW, "b1"))
    assert task.is_deleted
    assert task.deleted_at == NOW


def test_task_dict_uses_plain_values() -> None:
    task = Task(
        id="t1", goal_id="g1", status=TaskStatus.COMPLETED, completed_at=NOW,
        schedule=Schedule(date(2026, 3, 10), "08:00", 25), tombstone=Tombstone(NOW, "b1"),
    )
    data = task.to_dict()
    assert data["status"] == "completed"
    assert data["completed_at"] == NOW.isoformat()
    assert data["schedule"] == {"date": "2026-03-10", "start": "08:00", "duration_minutes": 25}
    assert Task.from_dict(data) == task


def test_from_dict_tolerates_missing_optionals() -> None:
    goal = Goal.from_dict({"id": "g1", "user_id": "u1"})
    assert goal.progress == 0
    assert goal.tombstone is None
    user = User.from_dict({"id": "u1"})
    assert user.last_active_date is None


def test_plan_overcommitted_by() -> None:
    plan = DailyPlan(id="p1", user_id="u1", date=date(2026, 3, 10), total_estimated_minutes=400)
    assert plan.overcommitted_by_minutes == 40
    assert plan.status == PlanStatus.IN_PROGRESS
    plan.total_estimated_minutes = 100
    assert plan.overcommitted_by_minutes == 0


def test_activity_key() -> None:
    row = DailyActivity("u1", date(2026, 3, 10))
    assert row.key == activity_key("u1", date(2026, 3, 10)) == "u1:2026-03-10"


def test_is_completed_tracks_status() -> None:
    task = Task(id="t1", goal_id="g1")
    assert task.is_completed is False
    task.status = TaskStatus.SKIPPED
    assert task.is_completed is False
    task.status = TaskStatus.COMPLETED
    assert task.is_completed is True
