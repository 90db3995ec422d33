"""Errors module edge case tests."""

from __future__ import annotations

from visualise.errors import ExitCode, VisualiseError, user_facing_error


def test_user_facing_error_without_hint() -> None:
    result = user_facing_error("something went wrong")
    assert result == "Error: something went wrong."


def test_user_facing_error_with_hint() -> None:
    result = user_facing_error("something went wrong", hint="try again")
    assert result == "Error: something went wrong. Next step: try again"


def test_exit_code_values() -> None:
    assert int(ExitCode.SUCCESS) == 0
    assert int(ExitCode.INVALID_ARGS) == 2
    assert int(ExitCode.CONFIG_ERROR) == 3
    assert int(ExitCode.RUNTIME_ERROR) == 4
    assert int(ExitCode.UPSTREAM_ERROR) == 5
    assert int(ExitCode.RUNTIME_NOT_READY) == 6
    assert int(ExitCode.VALIDATION_ERROR) == 7
    assert int(ExitCode.RESOURCE_BUSY) == 8
    assert int(ExitCode.PARSE_DEGRADED) == 9


def test_visualise_error_str_with_hint() -> None:
    error = VisualiseError("msg", hint="hint")
    assert str(error) == "msg Hint: hint"


def test_visualise_error_str_without_hint() -> None:
    error = VisualiseError("msg")
    assert str(error) == "msg"
    assert error.code == ExitCode.RUNTIME_ERROR


def test_needs_runtime_only_for_runtime_not_ready() -> None:
    assert VisualiseError("x", code=ExitCode.RUNTIME_NOT_READY).needs_runtime is True
    assert VisualiseError("x", code=ExitCode.UPSTREAM_ERROR).needs_runtime is False
