"""Fixed-backoff retry policy for idempotent remote calls.

Only status queries and wait-condition registration go through this policy.
Submissions and kills are never retried.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import structlog

from childproc.domain import RemoteCallFailedError

logger = structlog.get_logger(__name__)

ResultT = TypeVar("ResultT")


@dataclass(frozen=True)
class FixedRetryPolicy:
    """Immutable retry policy with a fixed delay between attempts.

    Attributes:
        attempts: Total number of attempts, including the first one.
        delay_seconds: Delay before each retry.
        sleep: Sleep function, replaceable in tests.
    """

    attempts: int = 3
    delay_seconds: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")

    def retry_call(self, operation: Callable[[], ResultT], operation_label: str) -> ResultT:
        """Run `operation`, retrying remote call failures.

        Args:
            operation: Zero-argument callable performing one remote call.
            operation_label: Label used in log events.

        Returns:
            ResultT: Operation result from the first successful attempt.

        Raises:
            RemoteCallFailedError: Raised with the last failure when every attempt failed.
        """

        for attempt_index in range(self.attempts):
            try:
                return operation()
            except RemoteCallFailedError as error:
                is_last_attempt = attempt_index + 1 >= self.attempts
                logger.warning(
                    "retry.attempt_failed",
                    operation=operation_label,
                    attempt=attempt_index + 1,
                    attempts=self.attempts,
                    error=str(error),
                )
                if is_last_attempt:
                    raise
                self.sleep(self.delay_seconds)

        raise RuntimeError("retry loop exited without a result")
