"""Tests for the fixed retry policy."""

from __future__ import annotations

import pytest

from childproc.domain import InvalidConfigError, RemoteCallFailedError
from childproc.jobs import FixedRetryPolicy


def test_jobs_retry_returns_first_success_after_transient_failures() -> None:
    sleep_calls: list[float] = []
    attempts: list[int] = []

    def _operation() -> str:
        attempts.append(len(attempts) + 1)
        if len(attempts) < 3:
            raise RemoteCallFailedError("unavailable", status_code=503)
        return "ok"

    policy = FixedRetryPolicy(attempts=3, delay_seconds=1.0, sleep=sleep_calls.append)

    assert policy.retry_call(_operation, operation_label="get_status") == "ok"
    assert attempts == [1, 2, 3]
    assert sleep_calls == [1.0, 1.0]


def test_jobs_retry_reraises_last_failure_without_trailing_sleep() -> None:
    sleep_calls: list[float] = []

    def _operation() -> str:
        raise RemoteCallFailedError("unavailable", status_code=502)

    with pytest.raises(RemoteCallFailedError) as error_info:
        FixedRetryPolicy(attempts=2, delay_seconds=0.5, sleep=sleep_calls.append).retry_call(
            _operation,
            operation_label="set_wait_condition",
        )

    assert error_info.value.status_code == 502
    assert sleep_calls == [0.5]


def test_jobs_retry_does_not_retry_other_errors() -> None:
    calls: list[str] = []

    def _operation() -> str:
        calls.append("called")
        raise InvalidConfigError("bad input")

    with pytest.raises(InvalidConfigError):
        FixedRetryPolicy(sleep=lambda _seconds: None).retry_call(_operation, operation_label="get_status")

    assert calls == ["called"]


def test_jobs_retry_rejects_invalid_policy() -> None:
    with pytest.raises(ValueError, match="attempts must be >= 1"):
        FixedRetryPolicy(attempts=0)

