"""Engine facade: the operations the CLI and UI call.

A task completion runs one transaction scoped to the task's goal and the
goal's owner: recompute progress, check milestones against the fresh
value, advance the streak, bump today's activity, then pick the next task.
Nothing is written unless every step succeeds.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable

from clarity import log
from clarity.activity import History, history, record_completion
from clarity.config import Config
from clarity.daily_plan import ConfirmResult, DailyPlanLedger, Overcommitment, UnfinishedTask
from clarity.deletion import GoalDeleteResult, SoftDeleteCoordinator, TaskDeleteResult, UndoResult
from clarity.errors import BadInput, InvalidTransition, NotFound, PreconditionFailed
from clarity.graph import TaskGraph, validate_dependencies
from clarity.milestones import MilestoneTracker
from clarity.progress import ProgressAggregator, compute_progress
from clarity.reinforcement import Reinforcement, ReinforcementPicker, ReinforcementType
from clarity.store import RecordStore, Transaction, goal_scope, user_scope
from clarity.streak import StreakTracker, StreakUpdate
from clarity.tasks.model import DailyPlan, Goal, GoalStatus, Schedule, Task, TaskStatus, User

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CompletionOutcome:
    completed_task: Task
    next_task: Task | None
    goal_progress: int
    milestone: int | None
    streak: StreakUpdate
    reinforcement: Reinforcement


@dataclass
class NextTaskView:
    task: Task | None
    position: int
    total_tasks: int
    goal_progress: int


@dataclass
class TaskUpdateOutcome:
    task: Task
    goal_progress: int
    milestone: int | None


class Engine:
    def __init__(
        self,
        store: RecordStore | None = None,
        config: Config | None = None,
        *,
        clock: Clock = utc_now,
        milestones: MilestoneTracker | None = None,
        reinforcement: ReinforcementPicker | None = None,
    ) -> None:
        self.store = store if store is not None else RecordStore()
        self.config = config or Config()
        self.clock = clock
        self.progress = ProgressAggregator()
        self.milestones = milestones or MilestoneTracker(thresholds=self.config.milestone_thresholds)
        self.streaks = StreakTracker()
        self.reinforcement = reinforcement or ReinforcementPicker()
        self.deletes = SoftDeleteCoordinator(
            self.store,
            self.progress,
            self.milestones,
            clock,
            undo_window_seconds=self.config.undo_window_seconds,
        )
        self.plans = DailyPlanLedger(
            self.store,
            clock,
            focus_threshold_minutes=self.config.focus_threshold_minutes,
        )

    # ── lookups ──────────────────────────────────────────────────

    def _goal_of_task(self, task_id: str) -> Goal:
        task = self.store.peek("tasks", task_id)
        if task is None or task.is_deleted:
            raise NotFound("task", task_id)
        return self._peek_goal(task.goal_id)

    def _peek_goal(self, goal_id: str) -> Goal:
        goal = self.store.peek("goals", goal_id)
        if goal is None or goal.is_deleted:
            raise NotFound("goal", goal_id)
        return goal

    def get_user(self, user_id: str) -> User:
        user = self.store.peek("users", user_id)
        if user is None:
            raise NotFound("user", user_id)
        return user

    def get_goal(self, goal_id: str) -> Goal:
        return self._peek_goal(goal_id)

    def get_task(self, task_id: str) -> Task:
        task = self.store.peek("tasks", task_id)
        if task is None or task.is_deleted:
            raise NotFound("task", task_id)
        return task

    def list_goals(self, user_id: str | None = None, status: GoalStatus | None = None) -> list[Goal]:
        goals = [
            g for g in self.store.snapshot("goals")
            if not g.is_deleted
            and (user_id is None or g.user_id == user_id)
            and (status is None or g.status == status)
        ]
        return sorted(goals, key=lambda g: (g.sort_order, g.id))

    def list_tasks(self, goal_id: str) -> list[Task]:
        self._peek_goal(goal_id)
        with self.store.transaction() as txn:
            return txn.tasks_for_goal(goal_id)

    # ── creation ─────────────────────────────────────────────────

    def create_user(self, name: str = "", user_id: str | None = None) -> User:
        user = User(id=user_id or str(uuid.uuid4()), name=name)
        with self.store.transaction(user_scope(user.id)) as txn:
            if txn.get("users", user.id) is not None:
                raise BadInput(f"user {user.id} already exists")
            txn.put_user(user)
        log.debug(f"User {user.id}: created")
        return user

    def create_goal(self, user_id: str, title: str, goal_id: str | None = None) -> Goal:
        goal_id = goal_id or str(uuid.uuid4())
        with self.store.transaction(user_scope(user_id), goal_scope(goal_id)) as txn:
            if txn.get("users", user_id) is None:
                raise PreconditionFailed(f"no user record for {user_id}; create the user first")
            if txn.get("goals", goal_id) is not None:
                raise BadInput(f"goal {goal_id} already exists")
            siblings = txn.select("goals", lambda g: g.user_id == user_id and not g.is_deleted)
            goal = Goal(
                id=goal_id,
                user_id=user_id,
                title=title,
                sort_order=len(siblings),
                created_at=self.clock(),
            )
            txn.put_goal(goal)
        log.debug(f"Goal {goal_id}: created for user {user_id}")
        return goal

    def add_task(
        self,
        goal_id: str,
        title: str,
        *,
        estimated_minutes: int = 30,
        depends_on: list[str] | None = None,
        sort_order: int | None = None,
        description: str = "",
        done_definition: str = "",
        parent_task_id: str | None = None,
        task_id: str | None = None,
    ) -> Task:
        """Add a task to *goal_id*, rejecting non-sibling or cyclic dependencies."""
        task_id = task_id or str(uuid.uuid4())
        deps = list(dict.fromkeys(depends_on or []))
        with self.store.transaction(goal_scope(goal_id)) as txn:
            now = self.clock()
            txn.goal(goal_id)
            if txn.get("tasks", task_id) is not None:
                raise BadInput(f"task {task_id} already exists")
            siblings = txn.tasks_for_goal(goal_id)
            validate_dependencies(siblings, task_id, deps)
            if parent_task_id is not None and parent_task_id not in {t.id for t in siblings}:
                raise BadInput(f"parent task {parent_task_id} is not an active task of goal {goal_id}")
            if sort_order is None:
                sort_order = max((t.sort_order for t in siblings), default=-1) + 1
            task = Task(
                id=task_id,
                goal_id=goal_id,
                title=title,
                description=description,
                done_definition=done_definition,
                estimated_minutes=estimated_minutes,
                depends_on=deps,
                sort_order=sort_order,
                parent_task_id=parent_task_id,
                created_at=now,
            )
            txn.put_task(task)
            progress = self.progress.recompute(txn, goal_id, now).progress
            txn.on_commit(lambda: self.milestones.seed(goal_id, progress))
        log.debug(f"Task {task_id}: added to goal {goal_id}")
        return task

    def set_dependencies(self, task_id: str, depends_on: list[str]) -> Task:
        goal = self._goal_of_task(task_id)
        deps = list(dict.fromkeys(depends_on))
        with self.store.transaction(goal_scope(goal.id)) as txn:
            task = txn.task(task_id)
            validate_dependencies(txn.tasks_for_goal(goal.id), task_id, deps)
            task.depends_on = deps
            txn.put_task(task)
        log.debug(f"Task {task_id}: dependsOn -> {deps or 'none'}")
        return task

    # ── completion ───────────────────────────────────────────────

    def _apply_completion(
        self, txn: Transaction, task: Task, goal: Goal, now: datetime
    ) -> tuple[Goal, int | None, StreakUpdate]:
        baseline = goal.progress
        task.status = TaskStatus.COMPLETED
        task.completed_at = now
        txn.put_task(task)

        updated = self.progress.recompute(txn, goal.id, now)
        milestone = self.milestones.preview(goal.id, updated.progress, fallback_baseline=baseline)
        if txn.get("users", goal.user_id) is None:
            raise PreconditionFailed(f"no user record for {goal.user_id}; cannot track streak")
        streak = self.streaks.record_completion(txn, goal.user_id, now.date())
        record_completion(txn, goal.user_id, now.date(), goal_advanced=updated.progress > 0)

        progress = updated.progress
        txn.on_commit(lambda: self.milestones.seed(goal.id, progress))
        return updated, milestone, streak

    def complete_task(self, task_id: str) -> CompletionOutcome:
        """Mark *task_id* completed and report progress, milestone, streak and next task.

        Completing an already-completed task is a no-op that reports the
        current state, so a double-submitted completion is harmless.
        """
        goal = self._goal_of_task(task_id)
        with self.store.transaction(goal_scope(goal.id), user_scope(goal.user_id)) as txn:
            now = self.clock()
            task = txn.task(task_id)
            goal = txn.goal(goal.id)
            if task.is_completed:
                user = txn.user(goal.user_id)
                milestone = None
                streak = StreakUpdate(
                    user.current_streak, user.longest_streak, False, user.last_active_date
                )
                log.debug(f"Task {task_id}: already completed")
            else:
                goal, milestone, streak = self._apply_completion(txn, task, goal, now)
            next_view = TaskGraph(txn.tasks_for_goal(goal.id)).get_next()

        if milestone is not None:
            kind = ReinforcementType.MILESTONE
        elif streak.is_new_record:
            kind = ReinforcementType.STREAK
        else:
            kind = ReinforcementType.COMPLETION
        reinforcement = self.reinforcement.pick(
            kind, progress=goal.progress, streak_count=streak.current
        )
        log.debug(f"Task {task_id}: completed (goal {goal.id} at {goal.progress}%)")
        return CompletionOutcome(
            completed_task=task,
            next_task=next_view.task,
            goal_progress=goal.progress,
            milestone=milestone,
            streak=streak,
            reinforcement=reinforcement,
        )

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        estimated_minutes: int | None = None,
        status: TaskStatus | None = None,
        sort_order: int | None = None,
    ) -> TaskUpdateOutcome:
        """Edit task fields. A status change recomputes goal progress.

        Moving a task to ``completed`` goes through the same path as
        :meth:`complete_task` (streak and activity included).
        """
        goal = self._goal_of_task(task_id)
        with self.store.transaction(goal_scope(goal.id), user_scope(goal.user_id)) as txn:
            now = self.clock()
            task = txn.task(task_id)
            goal = txn.goal(goal.id)
            if title is not None:
                task.title = title
            if description is not None:
                task.description = description
            if estimated_minutes is not None:
                task.estimated_minutes = estimated_minutes
            if sort_order is not None:
                task.sort_order = sort_order

            milestone = None
            if status == TaskStatus.COMPLETED and not task.is_completed:
                goal, milestone, _ = self._apply_completion(txn, task, goal, now)
            else:
                if status is not None and status != task.status:
                    log.debug(f"Task {task_id}: {task.status.value} -> {status.value}")
                    if task.is_completed:
                        task.completed_at = None
                    task.status = status
                txn.put_task(task)
                goal = self.progress.recompute(txn, goal.id, now)
                progress = goal.progress
                goal_id = goal.id
                txn.on_commit(lambda: self.milestones.seed(goal_id, progress))

        return TaskUpdateOutcome(task=task, goal_progress=goal.progress, milestone=milestone)

    def skip_task(self, task_id: str) -> TaskUpdateOutcome:
        return self.update_task(task_id, status=TaskStatus.SKIPPED)

    # ── scheduling ───────────────────────────────────────────────

    def schedule_task(self, task_id: str, day: date, start: str = "", duration_minutes: int = 30) -> Task:
        goal = self._goal_of_task(task_id)
        with self.store.transaction(goal_scope(goal.id)) as txn:
            task = txn.task(task_id)
            task.schedule = Schedule(date=day, start=start, duration_minutes=duration_minutes)
            txn.put_task(task)
        log.debug(f"Task {task_id}: scheduled for {day} {start}".rstrip())
        return task

    def unschedule_task(self, task_id: str) -> Task:
        goal = self._goal_of_task(task_id)
        with self.store.transaction(goal_scope(goal.id)) as txn:
            task = txn.task(task_id)
            task.schedule = None
            txn.put_task(task)
        return task

    # ── queries ──────────────────────────────────────────────────

    def get_next_task(self, goal_id: str) -> NextTaskView:
        self._peek_goal(goal_id)
        with self.store.transaction() as txn:
            tasks = txn.tasks_for_goal(goal_id)
        nxt = TaskGraph(tasks).get_next()
        return NextTaskView(
            task=nxt.task,
            position=nxt.position,
            total_tasks=nxt.total_tasks,
            goal_progress=compute_progress(tasks),
        )

    def streak(self, user_id: str) -> tuple[int, int]:
        user = self.get_user(user_id)
        return user.current_streak, user.longest_streak

    def history(self, user_id: str, days: int = 30) -> History:
        self.get_user(user_id)
        return history(self.store, user_id, self.clock().date(), days)

    # ── goal lifecycle ───────────────────────────────────────────

    def archive_goal(self, goal_id: str) -> Goal:
        with self.store.transaction(goal_scope(goal_id)) as txn:
            goal = txn.goal(goal_id)
            if goal.status == GoalStatus.ARCHIVED:
                raise InvalidTransition(f"goal {goal_id} is already archived")
            log.debug(f"Goal {goal_id}: {goal.status.value} -> archived")
            goal.status = GoalStatus.ARCHIVED
            txn.put_goal(goal)
            txn.on_commit(lambda: self.milestones.forget(goal_id))
        return goal

    # ── soft delete ──────────────────────────────────────────────

    def soft_delete_task(self, task_id: str) -> TaskDeleteResult:
        return self.deletes.delete_task(task_id)

    def undo_delete_task(self, task_id: str) -> UndoResult:
        return self.deletes.undo_task_delete(task_id)

    def soft_delete_goal(self, goal_id: str) -> GoalDeleteResult:
        return self.deletes.delete_goal(goal_id)

    def undo_delete_goal(self, goal_id: str, cascade_deleted_task_ids: list[str]) -> UndoResult:
        return self.deletes.undo_goal_delete(goal_id, cascade_deleted_task_ids)

    def purge_expired(self, age_seconds: float | None = None) -> int:
        if age_seconds is None:
            age_seconds = self.config.purge_age_seconds
        return self.deletes.purge_expired(age_seconds)

    # ── daily plan ───────────────────────────────────────────────

    def start_daily_plan(self, user_id: str) -> DailyPlan:
        return self.plans.start(user_id)

    def update_daily_plan_selections(self, plan_id: str, task_ids: list[str]) -> Overcommitment:
        return self.plans.update_selections(plan_id, task_ids)

    def confirm_daily_plan(self, plan_id: str) -> ConfirmResult:
        return self.plans.confirm(plan_id)

    def skip_daily_plan(self, plan_id: str) -> DailyPlan:
        return self.plans.skip(plan_id)

    def yesterday_unfinished(self, user_id: str) -> list[UnfinishedTask]:
        return self.plans.yesterday_unfinished(user_id)
