"""Parallel completion waiter for sets of remote processes."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Sequence

import structlog

from childproc.adapters import ProcessServicePort
from childproc.domain import (
    AggregateResult,
    InvalidConfigError,
    ProcessHandle,
    RemoteCallFailedError,
    WaitSet,
    WaitTimeoutError,
)

from .retry import FixedRetryPolicy

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _PollOutcome:
    """Result of one per-identifier polling task."""

    instance_id: str
    handle: ProcessHandle | None = None
    timed_out: bool = False
    error: RemoteCallFailedError | None = None


class CompletionWaiter:
    """Polls every member of a wait set on its own worker until all are terminal.

    Tasks share one absolute deadline. Each task's outcome is collected and the
    aggregate is assembled once, after every task has returned, so timeouts and
    exhausted retries are reported only when no task is still running.
    """

    def __init__(
        self,
        process_service: ProcessServicePort,
        retry_policy: FixedRetryPolicy | None = None,
        poll_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize completion waiter.

        Args:
            process_service: Remote process service port.
            retry_policy: Retry policy for status queries.
            poll_interval_seconds: Delay between polls of one non-terminal process.
            clock: Monotonic clock in seconds.
            sleep: Sleep function.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or intervals are invalid.
        """

        if process_service is None:
            raise ValueError("process_service must not be None")
        if poll_interval_seconds < 0:
            raise ValueError("poll_interval_seconds must be >= 0")

        self._process_service = process_service
        self._retry_policy = retry_policy or FixedRetryPolicy(sleep=sleep)
        self._poll_interval_seconds = poll_interval_seconds
        self._clock = clock
        self._sleep = sleep

    def waiter_await_all(self, instance_ids: Sequence[str], timeout_seconds: float | None = None) -> AggregateResult:
        """Wait until every identifier reaches a terminal status.

        Args:
            instance_ids: Identifiers to await. Duplicates are awaited once.
            timeout_seconds: Optional bound for the whole set, measured from now.

        Returns:
            AggregateResult: Terminal handles keyed by identifier.

        Raises:
            InvalidConfigError: Raised when the timeout is not positive.
            WaitTimeoutError: Raised when any member is still non-terminal at the deadline.
            RemoteCallFailedError: Raised when status queries for a member exhausted the retry budget.
        """

        if timeout_seconds is not None and timeout_seconds <= 0:
            raise InvalidConfigError(f"timeout must be > 0 seconds: {timeout_seconds}")

        unique_ids = tuple(dict.fromkeys(str(instance_id) for instance_id in instance_ids))
        if not unique_ids:
            return AggregateResult(handles={})

        deadline = self._clock() + timeout_seconds if timeout_seconds is not None else None
        wait_set = WaitSet(instance_ids=unique_ids, deadline=deadline)

        outcomes: list[_PollOutcome] = []
        with ThreadPoolExecutor(max_workers=len(unique_ids), thread_name_prefix="child-wait") as executor:
            futures = [executor.submit(self._waiter_poll_one, instance_id, wait_set) for instance_id in unique_ids]
            for future in as_completed(futures):
                outcomes.append(future.result())

        timed_out_ids = sorted(outcome.instance_id for outcome in outcomes if outcome.timed_out)
        if timed_out_ids:
            raise WaitTimeoutError(
                f"Timeout waiting for {', '.join(timed_out_ids)} after {timeout_seconds}s",
                instance_ids=timed_out_ids,
            )

        failed_outcomes = sorted(
            (outcome for outcome in outcomes if outcome.error is not None),
            key=lambda outcome: outcome.instance_id,
        )
        if failed_outcomes:
            first_error = failed_outcomes[0].error
            raise RemoteCallFailedError(
                f"status query failed for {failed_outcomes[0].instance_id}: {first_error}",
                status_code=first_error.status_code if first_error is not None else None,
            ) from first_error

        return AggregateResult(
            handles={outcome.instance_id: outcome.handle for outcome in outcomes if outcome.handle is not None}
        )

    def _waiter_poll_one(self, instance_id: str, wait_set: WaitSet) -> _PollOutcome:
        """Poll one identifier until terminal, expired or failed.

        Args:
            instance_id: Identifier to poll.
            wait_set: Shared wait set with the absolute deadline.

        Returns:
            _PollOutcome: Terminal handle, timeout marker or exhausted remote failure.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        logger.info("child_process.waiting", instance_id=instance_id, deadline=wait_set.deadline)
        while True:
            try:
                handle = self._retry_policy.retry_call(
                    lambda: self._process_service.service_get_status(instance_id),
                    operation_label="get_status",
                )
            except RemoteCallFailedError as error:
                logger.error("child_process.status_query_failed", instance_id=instance_id, error=str(error))
                return _PollOutcome(instance_id=instance_id, error=error)

            if handle.handle_is_terminal():
                logger.info("child_process.terminal", instance_id=instance_id, status=handle.status.value)
                return _PollOutcome(instance_id=instance_id, handle=handle)

            now = self._clock()
            if wait_set.wait_set_is_expired(now):
                logger.warning("child_process.wait_expired", instance_id=instance_id, status=handle.status.value)
                return _PollOutcome(instance_id=instance_id, timed_out=True)

            delay_seconds = self._poll_interval_seconds
            if wait_set.deadline is not None:
                delay_seconds = min(delay_seconds, max(wait_set.deadline - now, 0.0))
            self._sleep(delay_seconds)
