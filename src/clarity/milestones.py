"""First-crossing detection for goal progress thresholds."""

from __future__ import annotations

import threading

from clarity import log
from clarity.config import MILESTONE_THRESHOLDS


class MilestoneMemory:
    """Last observed progress per goal. Thread-safe; owned by one tracker."""

    def __init__(self) -> None:
        self._last: dict[str, int] = {}
        self._lock = threading.Lock()

    def swap(self, goal_id: str, progress: int) -> int:
        """Store *progress* for *goal_id* and return the previous value (0 if unseen)."""
        with self._lock:
            previous = self._last.get(goal_id, 0)
            self._last[goal_id] = progress
            return previous

    def get(self, goal_id: str) -> int | None:
        with self._lock:
            return self._last.get(goal_id)

    def evict(self, goal_id: str) -> None:
        with self._lock:
            self._last.pop(goal_id, None)


class MilestoneTracker:
    """Report the lowest threshold crossed since the last observation.

    When a single step crosses several thresholds (60 -> 100 crosses 75 and
    100) only the lowest one is reported. The baseline follows every
    observation, so a threshold is reported again only after progress has
    dropped back below it.
    """

    def __init__(
        self,
        memory: MilestoneMemory | None = None,
        thresholds: tuple[int, ...] = MILESTONE_THRESHOLDS,
    ) -> None:
        self.memory = memory if memory is not None else MilestoneMemory()
        self.thresholds = tuple(sorted(thresholds))

    def preview(self, goal_id: str, current_progress: int, fallback_baseline: int = 0) -> int | None:
        """Threshold that *current_progress* would cross, without recording it.

        *fallback_baseline* stands in for the last observation when this
        tracker has never seen the goal, e.g. in a freshly started process.
        """
        previous = self.memory.get(goal_id)
        if previous is None:
            previous = fallback_baseline
        return self._crossed(previous, current_progress)

    def check(self, goal_id: str, current_progress: int) -> int | None:
        previous = self.memory.swap(goal_id, current_progress)
        crossed = self._crossed(previous, current_progress)
        if crossed is not None:
            log.debug(f"Goal {goal_id}: milestone {crossed}% ({previous}% -> {current_progress}%)")
        return crossed

    def _crossed(self, previous: int, current: int) -> int | None:
        for threshold in self.thresholds:
            if previous < threshold <= current:
                return threshold
        return None

    def seed(self, goal_id: str, progress: int) -> None:
        """Set the baseline without reporting, e.g. when a goal is first loaded."""
        self.memory.swap(goal_id, progress)

    def forget(self, goal_id: str) -> None:
        """Eviction hook for archived or deleted goals."""
        self.memory.evict(goal_id)
