"""Per-day completion counters and history summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta

from clarity.store import RecordStore, Transaction
from clarity.tasks.model import DailyActivity, GoalStatus, activity_key


@dataclass
class History:
    records: list[DailyActivity] = field(default_factory=list)
    total_tasks_completed: int = 0
    total_goals_completed: int = 0
    average_tasks_per_day: int = 0


def record_completion(txn: Transaction, user_id: str, day: date, goal_advanced: bool) -> DailyActivity:
    """Bump today's counters for *user_id*. Caller holds the user scope."""
    activity = txn.get("activity", activity_key(user_id, day))
    if activity is None:
        activity = DailyActivity(user_id=user_id, date=day)
    activity.tasks_completed += 1
    if goal_advanced:
        activity.goals_advanced += 1
    txn.put_activity(activity)
    return activity


def history(store: RecordStore, user_id: str, today: date, days: int = 30) -> History:
    start = today - timedelta(days=days)
    records = sorted(
        (
            a for a in store.snapshot("activity")
            if a.user_id == user_id and a.date >= start
        ),
        key=lambda a: a.date,
        reverse=True,
    )
    total = sum(a.tasks_completed for a in records)
    completed_goals = sum(
        1 for g in store.snapshot("goals")
        if g.user_id == user_id and not g.is_deleted and g.status == GoalStatus.COMPLETED
    )
    return History(
        records=records,
        total_tasks_completed=total,
        total_goals_completed=completed_goals,
        average_tasks_per_day=round(total / len(records)) if records else 0,
    )
