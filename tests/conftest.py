"""Shared fixtures for clarity tests.

Time handling in tests:
- Never sleep. Use the ``clock`` fixture and ``clock.advance(...)`` to move
  time forward for undo windows, streak days and plan dates.
- Use tmp_path for any on-disk store so tests are isolated and cleaned up.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from clarity.config import Config
from clarity.engine import Engine
from clarity.reinforcement import ReinforcementPicker
from clarity.store import RecordStore
from clarity.tasks.model import Goal, Task, TaskStatus, Tombstone

START = datetime(2026, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def _make_task(
    id: str,
    goal_id: str = "g1",
    status: TaskStatus = TaskStatus.PENDING,
    depends_on: list[str] | None = None,
    sort_order: int = 0,
    estimated_minutes: int = 30,
    deleted: bool = False,
) -> Task:
    return Task(
        id=id,
        goal_id=goal_id,
        title=f"Task {id}",
        status=status,
        depends_on=depends_on or [],
        sort_order=sort_order,
        estimated_minutes=estimated_minutes,
        tombstone=Tombstone(START, "batch") if deleted else None,
    )


def _make_goal(id: str = "g1", user_id: str = "u1", title: str = "") -> Goal:
    return Goal(id=id, user_id=user_id, title=title or f"Goal {id}")


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


@pytest.fixture
def make_goal():
    """Factory fixture that creates Goal instances."""
    return _make_goal


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Config:
    monkeypatch.delenv("CLARITY_FOCUS_THRESHOLD", raising=False)
    monkeypatch.delenv("CLARITY_STORE_PATH", raising=False)
    return Config(store_path=str(tmp_path / "store.json"))


@pytest.fixture
def engine(clock: FrozenClock, config: Config) -> Engine:
    """Engine over an in-memory store with user ``u1`` and goal ``g1``."""
    eng = Engine(
        RecordStore(),
        config,
        clock=clock,
        reinforcement=ReinforcementPicker(random.Random(7)),
    )
    eng.create_user("Tester", user_id="u1")
    eng.create_goal("u1", "Ship it", goal_id="g1")
    return eng


@pytest.fixture
def add_tasks(engine: Engine):
    """Add tasks to goal ``g1``: ``add_tasks("a", "b", c=["a"])``."""

    def _add(*ids: str, minutes: int = 30, **deps: list[str]) -> list[Task]:
        created = []
        for tid in list(ids) + list(deps):
            created.append(
                engine.add_task(
                    "g1", f"Task {tid}", task_id=tid, estimated_minutes=minutes,
                    depends_on=deps.get(tid, []),
                )
            )
        return created

    return _add
