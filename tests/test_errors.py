"""Tests for the error taxonomy: codes, hierarchy and messages."""

from __future__ import annotations

import pytest

from clarity.errors import (
    BadInput,
    ClarityError,
    DependencyCycle,
    InvalidDependency,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    UndoWindowExpired,
)


@pytest.mark.parametrize(
    "error, code",
    [
        (NotFound("task", "t1"), "not_found"),
        (PreconditionFailed("no user"), "precondition_failed"),
        (InvalidTransition("already confirmed"), "invalid_transition"),
        (UndoWindowExpired("t1", 31.0, 30), "invalid_transition"),
        (BadInput("empty title"), "bad_input"),
        (InvalidDependency("unknown task"), "bad_input"),
        (DependencyCycle(["a", "b", "a"]), "bad_input"),
    ],
)
def test_codes(error, code):
    assert isinstance(error, ClarityError)
    assert error.code == code


def test_not_found_message_and_fields():
    err = NotFound("goal", "g9")
    assert str(err) == "goal not found: g9"
    assert (err.kind, err.record_id) == ("goal", "g9")


def test_undo_window_expired_is_invalid_transition():
    err = UndoWindowExpired("t1", 42.0, 30)
    assert isinstance(err, InvalidTransition)
    assert "42.0s elapsed" in str(err)
    assert "window is 30s" in str(err)
    assert err.elapsed == 42.0


def test_dependency_cycle_message():
    err = DependencyCycle(["a", "b", "a"])
    assert str(err) == "dependency cycle: a -> b -> a"
    assert err.cycle == ["a", "b", "a"]
