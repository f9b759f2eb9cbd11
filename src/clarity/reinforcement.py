"""Short encouragement messages attached to completion outcomes."""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass
from enum import Enum


class ReinforcementType(str, Enum):
    COMPLETION = "completion"
    MILESTONE = "milestone"
    STREAK = "streak"
    RETURN = "return"


MESSAGES: dict[ReinforcementType, tuple[str, ...]] = {
    ReinforcementType.COMPLETION: (
        "Crushed it! One step closer to your goal.",
        "Done and done! Momentum is building.",
        "That's the way! Keep this energy going.",
        "Another one in the books.",
        "Task complete. What's next?",
        "You just proved you can do hard things.",
        "Progress feels good, doesn't it?",
        "Small wins compound into big results.",
        "Action beats perfection. Well done!",
        "You showed up and delivered.",
    ),
    ReinforcementType.MILESTONE: (
        "MILESTONE! You've hit {progress}% on your goal!",
        "Look at that progress: {progress}% complete!",
        "{progress}% done! The finish line is getting closer.",
        "Major milestone: {progress}%! Your consistency is paying off.",
        "You've reached {progress}%! Most people quit before this point.",
    ),
    ReinforcementType.STREAK: (
        "New streak record! {streak_count} days of consistent action!",
        "{streak_count} days in a row! You're building a powerful habit.",
        "Streak record broken: {streak_count} days!",
        "{streak_count} consecutive days!",
    ),
    ReinforcementType.RETURN: (
        "Welcome back! Ready to pick up where you left off?",
        "Great to see you again. Let's build on your progress!",
        "You came back, and that's half the battle.",
    ),
}


@dataclass(frozen=True)
class Reinforcement:
    message: str
    type: ReinforcementType


class ReinforcementPicker:
    """Random message per type, avoiding repeats until most of the pool is used."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._used: dict[ReinforcementType, set[int]] = {}
        self._lock = threading.Lock()

    def pick(
        self,
        kind: ReinforcementType,
        *,
        progress: int | None = None,
        streak_count: int | None = None,
    ) -> Reinforcement:
        pool = MESSAGES.get(kind, ())
        if not pool:
            return Reinforcement("Great job!", kind)

        with self._lock:
            used = self._used.setdefault(kind, set())
            if len(used) >= len(pool) - 1:
                used.clear()
            choices = [i for i in range(len(pool)) if i not in used]
            index = self._rng.choice(choices)
            used.add(index)

        message = pool[index]
        if progress is not None:
            message = message.replace("{progress}", str(progress))
        if streak_count is not None:
            message = message.replace("{streak_count}", str(streak_count))
        return Reinforcement(message, kind)
