"""Tests for the background purge sweeper."""

from __future__ import annotations

import time

from clarity.sweeper import PurgeSweeper


def test_run_once_counts(engine, add_tasks, clock):
    add_tasks("a", "b")
    engine.soft_delete_task("a")
    clock.advance(seconds=31)
    sweeper = PurgeSweeper(engine)

    assert sweeper.run_once() == 1
    assert sweeper.run_once() == 0
    assert sweeper.sweeps == 2
    assert sweeper.purged_total == 1
    assert engine.store.peek("tasks", "a") is None


def test_defaults_come_from_config(engine):
    sweeper = PurgeSweeper(engine)
    assert sweeper.interval == engine.config.sweep_interval_seconds
    assert sweeper.age == engine.config.purge_age_seconds


def test_start_and_stop(engine, add_tasks, clock):
    add_tasks("a")
    engine.soft_delete_task("a")
    clock.advance(minutes=1)
    sweeper = PurgeSweeper(engine, interval=0.01)
    sweeper.start()
    try:
        deadline = time.monotonic() + 5
        while sweeper.purged_total == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert sweeper.running
    finally:
        sweeper.stop()
    assert not sweeper.running
    assert sweeper.purged_total == 1


def test_failed_sweep_keeps_running(engine, monkeypatch):
    calls = []

    def flaky(age):
        calls.append(age)
        if len(calls) == 1:
            raise RuntimeError("store unavailable")
        return 0

    monkeypatch.setattr(engine, "purge_expired", flaky)
    sweeper = PurgeSweeper(engine, interval=0.01)
    sweeper.start()
    try:
        deadline = time.monotonic() + 5
        while len(calls) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        sweeper.stop()
    assert len(calls) >= 3
    assert sweeper.sweeps >= 2
