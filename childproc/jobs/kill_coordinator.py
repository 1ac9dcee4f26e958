"""Kill coordinator with bounded, non-fatal termination confirmation."""

from __future__ import annotations

from typing import Any

import structlog

from childproc.adapters import ProcessServicePort
from childproc.domain import KillOutcome, WaitTimeoutError

from .completion_waiter import CompletionWaiter
from .job_config import job_config_normalize_instance_ids

logger = structlog.get_logger(__name__)


class KillCoordinator:
    """Sends termination requests and optionally confirms them.

    Termination requests are not retried. Confirmation uses its own bound,
    distinct from ordinary wait timeouts, and a confirmation timeout is only
    reported as a warning.
    """

    def __init__(
        self,
        process_service: ProcessServicePort,
        completion_waiter: CompletionWaiter,
        kill_wait_timeout_seconds: float = 10.0,
    ):
        """Initialize kill coordinator.

        Args:
            process_service: Remote process service port.
            completion_waiter: Waiter used for confirmation.
            kill_wait_timeout_seconds: Confirmation bound per killed process.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or the bound are invalid.
        """

        if process_service is None:
            raise ValueError("process_service must not be None")
        if completion_waiter is None:
            raise ValueError("completion_waiter must not be None")
        if kill_wait_timeout_seconds <= 0:
            raise ValueError("kill_wait_timeout_seconds must be > 0")

        self._process_service = process_service
        self._completion_waiter = completion_waiter
        self._kill_wait_timeout_seconds = kill_wait_timeout_seconds

    def kill_one(self, instance_id: str, sync: bool = False) -> KillOutcome:
        """Kill one process.

        Args:
            instance_id: Process identifier.
            sync: Whether to wait for a terminal status afterwards.

        Returns:
            KillOutcome: `confirmed` is True only when a terminal status was observed in time.

        Raises:
            RemoteCallFailedError: Raised when the termination request fails.
        """

        self._process_service.service_kill(instance_id)
        logger.info("child_process.kill_requested", instance_id=instance_id, sync=sync)
        if not sync:
            return KillOutcome(instance_id=instance_id, confirmed=False)

        try:
            self._completion_waiter.waiter_await_all([instance_id], timeout_seconds=self._kill_wait_timeout_seconds)
        except WaitTimeoutError:
            warning = (
                f"Process {instance_id} did not terminate within {self._kill_wait_timeout_seconds}s after the kill request"
            )
            logger.warning(
                "child_process.kill_wait_timeout",
                instance_id=instance_id,
                timeout_seconds=self._kill_wait_timeout_seconds,
            )
            return KillOutcome(instance_id=instance_id, confirmed=False, warning=warning)

        logger.info("child_process.killed", instance_id=instance_id)
        return KillOutcome(instance_id=instance_id, confirmed=True)

    def kill_many(self, instance_ids: Any, sync: bool = False) -> list[KillOutcome]:
        """Kill every identifier in order.

        Args:
            instance_ids: A single str/UUID or a list, tuple or set of them.
            sync: Whether to confirm each kill.

        Returns:
            list[KillOutcome]: One outcome per identifier.

        Raises:
            InvalidConfigError: Raised for unsupported shapes or an empty collection.
            RemoteCallFailedError: Raised when a termination request fails.
        """

        return [self.kill_one(instance_id, sync=sync) for instance_id in job_config_normalize_instance_ids(instance_ids)]
