"""Configuration defaults, env vars, and runtime options for Clarity."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_UNDO_WINDOW_SECONDS = 30
DEFAULT_FOCUS_THRESHOLD_MINUTES = 360
MILESTONE_THRESHOLDS: tuple[int, ...] = (25, 50, 75, 100)


def default_store_path() -> Path:
    return Path.home() / ".clarity" / "store.json"


@dataclass
class Config:
    """Runtime configuration shared by the engine, sweeper and CLI."""

    # Soft delete
    undo_window_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS
    purge_age_seconds: float = DEFAULT_UNDO_WINDOW_SECONDS
    sweep_interval_seconds: float = 60

    # Daily plan
    focus_threshold_minutes: int = DEFAULT_FOCUS_THRESHOLD_MINUTES

    # Caller-side validation bounds
    min_task_minutes: int = 5
    max_task_minutes: int = 480

    # Engagement
    milestone_thresholds: tuple[int, ...] = field(default=MILESTONE_THRESHOLDS)

    # Storage
    store_path: str = ""

    # Misc
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.store_path:
            self.store_path = os.environ.get("CLARITY_STORE_PATH") or str(default_store_path())
        raw_threshold = os.environ.get("CLARITY_FOCUS_THRESHOLD")
        if raw_threshold:
            try:
                self.focus_threshold_minutes = int(raw_threshold)
            except ValueError:
                raise ValueError(
                    f"CLARITY_FOCUS_THRESHOLD must be an integer number of minutes, got {raw_threshold!r}"
                ) from None
        self.milestone_thresholds = tuple(sorted(self.milestone_thresholds))
