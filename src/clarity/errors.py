"""Error taxonomy for engine operations.

Every error is recoverable: callers report it and let the user retry or
pick a different action. ``code`` is stable and meant for programmatic
handling; the message is for humans.
"""

from __future__ import annotations


class ClarityError(Exception):
    code = "error"


class NotFound(ClarityError):
    """Referenced task, goal, plan or user is absent or tombstoned."""

    code = "not_found"

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class PreconditionFailed(ClarityError):
    code = "precondition_failed"


class InvalidTransition(ClarityError):
    code = "invalid_transition"


class UndoWindowExpired(InvalidTransition):
    def __init__(self, record_id: str, elapsed: float, window: float) -> None:
        super().__init__(
            f"undo window expired for {record_id} "
            f"({elapsed:.1f}s elapsed, window is {window:g}s)"
        )
        self.record_id = record_id
        self.elapsed = elapsed


class BadInput(ClarityError):
    code = "bad_input"


class InvalidDependency(BadInput):
    pass


class DependencyCycle(BadInput):
    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"dependency cycle: {' -> '.join(cycle)}")
        self.cycle = cycle
