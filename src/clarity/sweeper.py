"""Background purge of expired tombstones on a fixed cadence."""

from __future__ import annotations

import threading

from clarity import log
from clarity.engine import Engine


class PurgeSweeper:
    """Run :meth:`Engine.purge_expired` every *interval* seconds on a daemon thread.

    Usage::

        sweeper = PurgeSweeper(engine, interval=60)
        sweeper.start()
        ...
        sweeper.stop()

    Each sweep runs its own per-goal transactions, independent of any
    request in flight. A failed sweep is logged and retried next tick.
    """

    def __init__(self, engine: Engine, interval: float | None = None, age: float | None = None) -> None:
        self.engine = engine
        self.interval = interval if interval is not None else engine.config.sweep_interval_seconds
        self.age = age if age is not None else engine.config.purge_age_seconds
        self.sweeps = 0
        self.purged_total = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        purged = self.engine.purge_expired(self.age)
        self.sweeps += 1
        self.purged_total += purged
        if purged:
            log.info(f"Sweep {self.sweeps}: purged {purged} expired task(s)")
        return purged

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception as exc:
                log.error(f"Purge sweep failed: {exc}")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="clarity-purge", daemon=True)
        self._thread.start()
        log.debug(f"Purge sweeper started (every {self.interval:g}s, age {self.age:g}s)")

    def stop(self, timeout: float | None = 5) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.debug("Purge sweeper stopped")
