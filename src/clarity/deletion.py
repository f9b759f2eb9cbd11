"""Soft delete with cascading tombstones, a timed undo window, and purge.

Every delete operation stamps one :class:`Tombstone` (timestamp plus a fresh
batch id) on the target and everything it cascades to. Undo restores by
batch id, never by timestamp equality, so two deletes landing in the same
clock tick stay separate.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from clarity import log
from clarity.errors import InvalidTransition, NotFound, PreconditionFailed, UndoWindowExpired
from clarity.milestones import MilestoneTracker
from clarity.progress import ProgressAggregator
from clarity.store import RecordStore, Transaction, goal_scope
from clarity.tasks.model import Goal, Task, Tombstone


@dataclass
class TaskDeleteResult:
    task_id: str
    deleted_at: datetime
    batch_id: str
    cascade_deleted_ids: list[str] = field(default_factory=list)
    goal_progress: int = 0


@dataclass
class GoalDeleteResult:
    goal_id: str
    deleted_at: datetime
    batch_id: str
    cascade_deleted_task_ids: list[str] = field(default_factory=list)


@dataclass
class UndoResult:
    restored_ids: list[str]
    goal_progress: int


def new_batch_id() -> str:
    return uuid.uuid4().hex


class SoftDeleteCoordinator:
    def __init__(
        self,
        store: RecordStore,
        progress: ProgressAggregator,
        milestones: MilestoneTracker,
        clock: Callable[[], datetime],
        undo_window_seconds: float = 30,
    ) -> None:
        self._store = store
        self._progress = progress
        self._milestones = milestones
        self._clock = clock
        self.undo_window = timedelta(seconds=undo_window_seconds)

    # ── helpers ──────────────────────────────────────────────────

    def _goal_id_of(self, task_id: str) -> str:
        task = self._store.peek("tasks", task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task.goal_id

    def _check_window(self, record_id: str, tombstone: Tombstone, now: datetime) -> None:
        elapsed = now - tombstone.deleted_at
        if elapsed > self.undo_window:
            raise UndoWindowExpired(
                record_id, elapsed.total_seconds(), self.undo_window.total_seconds()
            )

    def _seed_on_commit(self, txn: Transaction, goal: Goal) -> None:
        """Move the milestone baseline to the recomputed progress without reporting."""
        goal_id, progress = goal.id, goal.progress
        txn.on_commit(lambda: self._milestones.seed(goal_id, progress))

    # ── tasks ────────────────────────────────────────────────────

    def delete_task(self, task_id: str) -> TaskDeleteResult:
        """Tombstone *task_id* and its direct dependents (one level only)."""
        goal_id = self._goal_id_of(task_id)
        with self._store.transaction(goal_scope(goal_id)) as txn:
            now = self._clock()
            task = txn.task(task_id)
            tombstone = Tombstone(deleted_at=now, batch_id=new_batch_id())

            task.tombstone = tombstone
            task.schedule = None
            txn.put_task(task)

            cascade: list[str] = []
            for sibling in txn.tasks_for_goal(goal_id):
                if sibling.id != task_id and task_id in sibling.depends_on:
                    sibling.tombstone = tombstone
                    txn.put_task(sibling)
                    cascade.append(sibling.id)

            goal = self._progress.recompute(txn, goal_id, now)
            self._seed_on_commit(txn, goal)

        log.debug(
            f"Task {task_id}: soft-deleted (batch {tombstone.batch_id}, "
            f"cascade {cascade or 'none'})"
        )
        return TaskDeleteResult(
            task_id=task_id,
            deleted_at=tombstone.deleted_at,
            batch_id=tombstone.batch_id,
            cascade_deleted_ids=cascade,
            goal_progress=goal.progress,
        )

    def undo_task_delete(self, task_id: str) -> UndoResult:
        """Restore *task_id* and the rest of its delete batch within the undo window."""
        goal_id = self._goal_id_of(task_id)
        with self._store.transaction(goal_scope(goal_id)) as txn:
            now = self._clock()
            task = txn.task(task_id, include_deleted=True)
            if task.tombstone is None:
                raise InvalidTransition(f"task {task_id} is not deleted; nothing to undo")
            self._check_window(task_id, task.tombstone, now)

            goal = txn.goal(goal_id, include_deleted=True)
            if goal.is_deleted:
                raise PreconditionFailed(
                    f"goal {goal_id} is deleted; undo the goal delete to restore its tasks"
                )

            batch_id = task.tombstone.batch_id
            cohort = [
                t for t in txn.tasks_for_goal(goal_id, include_deleted=True)
                if t.tombstone is not None and t.tombstone.batch_id == batch_id
            ]
            for member in cohort:
                member.tombstone = None
                txn.put_task(member)

            goal = self._progress.recompute(txn, goal_id, now)
            self._seed_on_commit(txn, goal)

        restored = [t.id for t in cohort]
        log.debug(f"Task {task_id}: undo restored {restored}")
        return UndoResult(restored_ids=restored, goal_progress=goal.progress)

    # ── goals ────────────────────────────────────────────────────

    def delete_goal(self, goal_id: str) -> GoalDeleteResult:
        with self._store.transaction(goal_scope(goal_id)) as txn:
            now = self._clock()
            goal = txn.goal(goal_id)
            tombstone = Tombstone(deleted_at=now, batch_id=new_batch_id())
            goal.tombstone = tombstone
            txn.put_goal(goal)

            cascade: list[str] = []
            for task in txn.tasks_for_goal(goal_id):
                task.tombstone = tombstone
                txn.put_task(task)
                cascade.append(task.id)

            txn.on_commit(lambda: self._milestones.forget(goal_id))

        log.debug(f"Goal {goal_id}: soft-deleted with {len(cascade)} task(s)")
        return GoalDeleteResult(
            goal_id=goal_id,
            deleted_at=now,
            batch_id=tombstone.batch_id,
            cascade_deleted_task_ids=cascade,
        )

    def undo_goal_delete(self, goal_id: str, cascade_deleted_task_ids: list[str]) -> UndoResult:
        """Restore *goal_id* plus exactly the task ids the caller kept from the delete."""
        with self._store.transaction(goal_scope(goal_id)) as txn:
            now = self._clock()
            goal = txn.goal(goal_id, include_deleted=True)
            if goal.tombstone is None:
                raise InvalidTransition(f"goal {goal_id} is not deleted; nothing to undo")
            self._check_window(goal_id, goal.tombstone, now)

            goal.tombstone = None
            txn.put_goal(goal)

            restored: list[str] = []
            for task_id in cascade_deleted_task_ids:
                task: Task | None = txn.get("tasks", task_id)
                if task is None or task.goal_id != goal_id:
                    log.warn(f"Goal {goal_id}: task {task_id} no longer exists; not restored")
                    continue
                if task.tombstone is None:
                    continue
                task.tombstone = None
                txn.put_task(task)
                restored.append(task_id)

            goal = self._progress.recompute(txn, goal_id, now)
            self._seed_on_commit(txn, goal)

        log.debug(f"Goal {goal_id}: undo restored goal and {len(restored)} task(s)")
        return UndoResult(restored_ids=restored, goal_progress=goal.progress)

    # ── purge ────────────────────────────────────────────────────

    def purge_expired(self, age_seconds: float = 30) -> int:
        """Permanently remove tombstones older than *age_seconds*.

        Goals past the cutoff are removed together with all of their tasks.
        Each goal is swept in its own transaction. Returns the number of
        tasks removed.
        """
        cutoff = self._clock() - timedelta(seconds=age_seconds)

        def expired(tombstone: Tombstone | None) -> bool:
            return tombstone is not None and tombstone.deleted_at < cutoff

        candidates = {t.goal_id for t in self._store.snapshot("tasks") if expired(t.tombstone)}
        candidates |= {g.id for g in self._store.snapshot("goals") if expired(g.tombstone)}

        purged_tasks = 0
        purged_goals = 0
        for goal_id in sorted(candidates):
            with self._store.transaction(goal_scope(goal_id)) as txn:
                goal = txn.get("goals", goal_id)
                goal_expired = goal is not None and expired(goal.tombstone)
                for task in txn.tasks_for_goal(goal_id, include_deleted=True):
                    if goal_expired or expired(task.tombstone):
                        txn.remove("tasks", task.id)
                        purged_tasks += 1
                if goal_expired:
                    txn.remove("goals", goal_id)
                    purged_goals += 1
                    txn.on_commit(lambda gid=goal_id: self._milestones.forget(gid))

        if purged_tasks or purged_goals:
            log.debug(f"Purged {purged_tasks} task(s) and {purged_goals} goal(s) older than {age_seconds:g}s")
        return purged_tasks
