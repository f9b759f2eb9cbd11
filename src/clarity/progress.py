"""Goal progress, always recomputed from live task state."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from clarity import log
from clarity.store import Transaction
from clarity.tasks.model import Goal, GoalStatus, Task


def compute_progress(tasks: Iterable[Task]) -> int:
    """Percentage of active tasks that are completed, rounded half up."""
    active = [t for t in tasks if not t.is_deleted]
    if not active:
        return 0
    completed = sum(1 for t in active if t.is_completed)
    # round() would bank 62.5 down to 62
    return (200 * completed + len(active)) // (2 * len(active))


class ProgressAggregator:
    """Recompute and persist ``goal.progress`` inside the caller's transaction.

    Progress is never incremented: every call derives it from the goal's
    current tasks, so concurrent writers converge on the same value.
    """

    def recompute(self, txn: Transaction, goal_id: str, now: datetime) -> Goal:
        goal = txn.goal(goal_id, include_deleted=True)
        progress = compute_progress(txn.tasks_for_goal(goal_id))
        previous = goal.progress
        goal.progress = progress
        if progress == 100 and goal.status == GoalStatus.ACTIVE:
            goal.status = GoalStatus.COMPLETED
            if goal.completed_at is None:
                goal.completed_at = now
            log.debug(f"Goal {goal_id}: active -> completed")
        txn.put_goal(goal)
        if previous != progress:
            log.debug(f"Goal {goal_id}: progress {previous}% -> {progress}%")
        return goal
