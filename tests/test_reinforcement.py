"""Tests for clarity.reinforcement message selection."""

from __future__ import annotations

import random

from clarity.reinforcement import MESSAGES, ReinforcementPicker, ReinforcementType


def test_progress_placeholder_is_filled():
    picker = ReinforcementPicker(random.Random(1))
    r = picker.pick(ReinforcementType.MILESTONE, progress=75)
    assert r.type == ReinforcementType.MILESTONE
    assert "75%" in r.message
    assert "{progress}" not in r.message


def test_streak_placeholder_is_filled():
    picker = ReinforcementPicker(random.Random(1))
    r = picker.pick(ReinforcementType.STREAK, streak_count=12)
    assert "12" in r.message
    assert "{streak_count}" not in r.message


def test_no_repeat_until_pool_mostly_used():
    picker = ReinforcementPicker(random.Random(3))
    pool = MESSAGES[ReinforcementType.COMPLETION]
    seen = [picker.pick(ReinforcementType.COMPLETION).message for _ in range(len(pool) - 1)]
    assert len(set(seen)) == len(seen)

