"""Daily-activity streak state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from clarity import log
from clarity.store import Transaction


@dataclass(frozen=True)
class StreakUpdate:
    current: int
    longest: int
    is_new_record: bool
    last_active_date: date | None


def advance_streak(
    today: date,
    last_active_date: date | None,
    current: int,
    longest: int,
) -> StreakUpdate:
    """Pure transition applied once per task completion.

    Same day leaves the counters alone, the next calendar day extends the
    streak, anything else (a gap, or no previous activity) restarts at 1.
    """
    if last_active_date == today:
        return StreakUpdate(current, longest, False, last_active_date)
    if last_active_date == today - timedelta(days=1):
        new_current = current + 1
    else:
        new_current = 1
    return StreakUpdate(
        current=new_current,
        longest=max(longest, new_current),
        is_new_record=new_current > longest,
        last_active_date=today,
    )


class StreakTracker:
    """Apply :func:`advance_streak` to a stored user.

    The caller's transaction must hold the user's scope so two concurrent
    completions cannot both advance from the same stale counter.
    """

    def record_completion(self, txn: Transaction, user_id: str, today: date) -> StreakUpdate:
        user = txn.user(user_id)
        update = advance_streak(today, user.last_active_date, user.current_streak, user.longest_streak)
        if update.last_active_date != user.last_active_date or update.current != user.current_streak:
            log.debug(
                f"User {user_id}: streak {user.current_streak} -> {update.current}"
                f" (longest {update.longest})"
            )
            user.current_streak = update.current
            user.longest_streak = update.longest
            user.last_active_date = update.last_active_date
            txn.put_user(user)
        return update
