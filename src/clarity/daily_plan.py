"""Per-day task commitments with a focus-time budget."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from clarity import log
from clarity.errors import InvalidTransition, PreconditionFailed
from clarity.store import RecordStore, plan_scope, user_scope
from clarity.tasks.model import DailyPlan, PlanStatus


@dataclass(frozen=True)
class Overcommitment:
    total_minutes: int
    is_overcommitted: bool
    overcommitted_by_minutes: int


@dataclass(frozen=True)
class ConfirmResult:
    confirmed_task_count: int
    total_estimated_minutes: int


@dataclass(frozen=True)
class UnfinishedTask:
    id: str
    title: str
    goal_title: str
    estimated_minutes: int


def calculate_overcommitment(total_minutes: int, threshold_minutes: int) -> Overcommitment:
    over = total_minutes > threshold_minutes
    return Overcommitment(
        total_minutes=total_minutes,
        is_overcommitted=over,
        overcommitted_by_minutes=total_minutes - threshold_minutes if over else 0,
    )


class DailyPlanLedger:
    """One plan per (user, date); ``in_progress`` until confirmed or skipped."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime],
        focus_threshold_minutes: int = 360,
    ) -> None:
        self._store = store
        self._clock = clock
        self.focus_threshold_minutes = focus_threshold_minutes

    def _today(self) -> date:
        return self._clock().date()

    def start(self, user_id: str) -> DailyPlan:
        """Return today's plan for *user_id*, creating it on first call."""
        today = self._today()
        with self._store.transaction(user_scope(user_id)) as txn:
            if txn.get("users", user_id) is None:
                raise PreconditionFailed(f"no user record for {user_id}; create the user first")
            existing = txn.select("plans", lambda p: p.user_id == user_id and p.date == today)
            if existing:
                plan = existing[0]
                log.debug(f"Plan {plan.id}: reusing {plan.status.value} plan for {today}")
                return plan
            plan = DailyPlan(
                id=str(uuid.uuid4()),
                user_id=user_id,
                date=today,
                focus_threshold_minutes=self.focus_threshold_minutes,
            )
            txn.put_plan(plan)
        log.debug(f"Plan {plan.id}: created for user {user_id} on {today}")
        return plan

    def update_selections(self, plan_id: str, task_ids: list[str]) -> Overcommitment:
        """Replace the selection and re-sum the tasks' current estimates."""
        with self._store.transaction(plan_scope(plan_id)) as txn:
            plan = txn.plan(plan_id)
            if plan.status != PlanStatus.IN_PROGRESS:
                raise InvalidTransition(
                    f"plan {plan_id} is {plan.status.value}; selections are frozen"
                )
            selected = list(dict.fromkeys(task_ids))
            total = 0
            for task_id in selected:
                task = txn.get("tasks", task_id)
                if task is None or task.is_deleted:
                    log.debug(f"Plan {plan_id}: ignoring missing task {task_id}")
                    continue
                total += task.estimated_minutes

            result = calculate_overcommitment(total, plan.focus_threshold_minutes)
            plan.selected_task_ids = selected
            plan.total_estimated_minutes = total
            plan.is_overcommitted = result.is_overcommitted
            txn.put_plan(plan)

        if result.is_overcommitted:
            log.debug(f"Plan {plan_id}: overcommitted by {result.overcommitted_by_minutes} min")
        return result

    def confirm(self, plan_id: str) -> ConfirmResult:
        plan = self._finish(plan_id, PlanStatus.CONFIRMED)
        return ConfirmResult(
            confirmed_task_count=len(plan.selected_task_ids),
            total_estimated_minutes=plan.total_estimated_minutes,
        )

    def skip(self, plan_id: str) -> DailyPlan:
        return self._finish(plan_id, PlanStatus.SKIPPED)

    def _finish(self, plan_id: str, status: PlanStatus) -> DailyPlan:
        with self._store.transaction(plan_scope(plan_id)) as txn:
            plan = txn.plan(plan_id)
            if plan.status != PlanStatus.IN_PROGRESS:
                raise InvalidTransition(
                    f"plan {plan_id} is already {plan.status.value}; cannot mark it {status.value}"
                )
            plan.status = status
            txn.put_plan(plan)
        log.debug(f"Plan {plan_id}: in_progress -> {status.value}")
        return plan

    def yesterday_unfinished(self, user_id: str) -> list[UnfinishedTask]:
        """Tasks scheduled for the previous calendar day that were not completed."""
        yesterday = self._today() - timedelta(days=1)
        goals = {
            g.id: g for g in self._store.snapshot("goals")
            if g.user_id == user_id and not g.is_deleted
        }
        unfinished = [
            t for t in self._store.snapshot("tasks")
            if t.goal_id in goals
            and not t.is_deleted
            and t.schedule is not None
            and t.schedule.date == yesterday
            and not t.is_completed
        ]
        unfinished.sort(key=lambda t: (t.schedule.start, t.sort_order, t.id))
        return [
            UnfinishedTask(
                id=t.id,
                title=t.title,
                goal_title=goals[t.goal_id].title,
                estimated_minutes=t.estimated_minutes,
            )
            for t in unfinished
        ]
