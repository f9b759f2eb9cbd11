"""Record store with per-scope locking and buffered, all-or-nothing commits.

Usage::

    store = RecordStore()
    with store.transaction(goal_scope(gid), user_scope(uid)) as txn:
        task = txn.task(tid)          # private copy
        task.status = TaskStatus.COMPLETED
        txn.put_task(task)            # buffered until the block exits cleanly

If the block raises, every buffered write is discarded and the committed
tables are left exactly as they were.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from clarity import log
from clarity.errors import NotFound
from clarity.io_utils import read_json, write_json
from clarity.tasks.model import DailyActivity, DailyPlan, Goal, Task, User

_RECORD_TYPES: dict[str, Any] = {
    "users": User,
    "goals": Goal,
    "tasks": Task,
    "plans": DailyPlan,
    "activity": DailyActivity,
}

_DELETED = object()


def goal_scope(goal_id: str) -> str:
    return f"goal:{goal_id}"


def user_scope(user_id: str) -> str:
    return f"user:{user_id}"


def plan_scope(plan_id: str) -> str:
    return f"plan:{plan_id}"


def _record_key(record: Any) -> str:
    if isinstance(record, DailyActivity):
        return record.key
    return record.id


class Transaction:
    """Buffered view over a :class:`RecordStore`.

    Reads return private copies; writes are staged and only become visible
    to other transactions once the owning ``with`` block exits cleanly.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._writes: dict[str, dict[str, Any]] = {name: {} for name in _RECORD_TYPES}
        self._on_commit: list[Callable[[], None]] = []

    # ── generic access ───────────────────────────────────────────

    def get(self, table: str, key: str) -> Any | None:
        staged = self._writes[table].get(key)
        if staged is _DELETED:
            return None
        if staged is not None:
            return copy.deepcopy(staged)
        return self._store._read(table, key)

    def select(self, table: str, predicate: Callable[[Any], bool] | None = None) -> list[Any]:
        merged = {_record_key(r): r for r in self._store._read_all(table)}
        for key, staged in self._writes[table].items():
            if staged is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = copy.deepcopy(staged)
        rows = list(merged.values())
        if predicate is not None:
            rows = [r for r in rows if predicate(r)]
        return rows

    def put(self, table: str, record: Any) -> None:
        self._writes[table][_record_key(record)] = copy.deepcopy(record)

    def remove(self, table: str, key: str) -> None:
        self._writes[table][key] = _DELETED

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run *callback* after a successful commit, while scope locks are still held."""
        self._on_commit.append(callback)

    @property
    def pending_writes(self) -> int:
        return sum(len(w) for w in self._writes.values())

    # ── typed helpers ────────────────────────────────────────────

    def user(self, user_id: str) -> User:
        user = self.get("users", user_id)
        if user is None:
            raise NotFound("user", user_id)
        return user

    def goal(self, goal_id: str, *, include_deleted: bool = False) -> Goal:
        goal = self.get("goals", goal_id)
        if goal is None or (goal.is_deleted and not include_deleted):
            raise NotFound("goal", goal_id)
        return goal

    def task(self, task_id: str, *, include_deleted: bool = False) -> Task:
        task = self.get("tasks", task_id)
        if task is None or (task.is_deleted and not include_deleted):
            raise NotFound("task", task_id)
        return task

    def plan(self, plan_id: str) -> DailyPlan:
        plan = self.get("plans", plan_id)
        if plan is None:
            raise NotFound("daily plan", plan_id)
        return plan

    def tasks_for_goal(self, goal_id: str, *, include_deleted: bool = False) -> list[Task]:
        """Tasks of *goal_id* ordered by ``sort_order``."""
        rows = self.select(
            "tasks",
            lambda t: t.goal_id == goal_id and (include_deleted or not t.is_deleted),
        )
        return sorted(rows, key=lambda t: (t.sort_order, t.id))

    def put_user(self, user: User) -> None:
        self.put("users", user)

    def put_goal(self, goal: Goal) -> None:
        self.put("goals", goal)

    def put_task(self, task: Task) -> None:
        self.put("tasks", task)

    def put_plan(self, plan: DailyPlan) -> None:
        self.put("plans", plan)

    def put_activity(self, activity: DailyActivity) -> None:
        self.put("activity", activity)


class RecordStore:
    """In-memory tables guarded by per-scope locks.

    Each transaction names the scopes (goal, user, plan) it touches. Locks
    are taken in sorted order so overlapping transactions cannot deadlock.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Any]] = {name: {} for name in _RECORD_TYPES}
        self._scope_locks: dict[str, threading.RLock] = {}
        self._scope_guard = threading.Lock()
        self._commit_lock = threading.RLock()

    # ── locking ──────────────────────────────────────────────────

    def _lock_for(self, scope: str) -> threading.RLock:
        with self._scope_guard:
            lock = self._scope_locks.get(scope)
            if lock is None:
                lock = threading.RLock()
                self._scope_locks[scope] = lock
            return lock

    @contextmanager
    def transaction(self, *scopes: str) -> Iterator[Transaction]:
        ordered = sorted({s for s in scopes if s})
        locks = [self._lock_for(s) for s in ordered]
        for lock in locks:
            lock.acquire()
        try:
            txn = Transaction(self)
            yield txn
            self._commit(txn)
            for callback in txn._on_commit:
                callback()
        finally:
            for lock in reversed(locks):
                lock.release()

    # ── committed state ──────────────────────────────────────────

    def _read(self, table: str, key: str) -> Any | None:
        with self._commit_lock:
            record = self._tables[table].get(key)
            return copy.deepcopy(record) if record is not None else None

    def _read_all(self, table: str) -> list[Any]:
        with self._commit_lock:
            return copy.deepcopy(list(self._tables[table].values()))

    def _commit(self, txn: Transaction) -> None:
        if not txn.pending_writes:
            return
        with self._commit_lock:
            previous: list[tuple[str, str, Any]] = []
            for table, writes in txn._writes.items():
                for key, record in writes.items():
                    previous.append((table, key, self._tables[table].get(key, _DELETED)))
                    if record is _DELETED:
                        self._tables[table].pop(key, None)
                    else:
                        self._tables[table][key] = record
            try:
                self._after_commit()
            except Exception:
                for table, key, record in reversed(previous):
                    if record is _DELETED:
                        self._tables[table].pop(key, None)
                    else:
                        self._tables[table][key] = record
                raise

    def _after_commit(self) -> None:
        """Hook for durable stores; runs while the commit lock is held."""

    def peek(self, table: str, key: str) -> Any | None:
        """Read a committed record outside of any transaction."""
        return self._read(table, key)

    def snapshot(self, table: str) -> list[Any]:
        """Copies of every committed record in *table*."""
        return self._read_all(table)

    def count(self, table: str) -> int:
        with self._commit_lock:
            return len(self._tables[table])

    # ── serialization ────────────────────────────────────────────

    def dump(self) -> dict[str, list[dict[str, Any]]]:
        with self._commit_lock:
            return {
                table: [r.to_dict() for r in rows.values()]
                for table, rows in self._tables.items()
            }

    def load(self, data: dict[str, list[dict[str, Any]]]) -> None:
        with self._commit_lock:
            for table, record_type in _RECORD_TYPES.items():
                rows = [record_type.from_dict(raw) for raw in data.get(table, [])]
                self._tables[table] = {_record_key(r): r for r in rows}


class JsonRecordStore(RecordStore):
    """RecordStore persisted to a single JSON file, rewritten on every commit."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.is_file():
            self.load(read_json(self.path))
            log.debug(f"Loaded store from {self.path}")

    def _after_commit(self) -> None:
        write_json(self.path, self.dump())
        log.debug(f"Store saved to {self.path}")
