"""In-process host scheduler registry for parked parent executions."""

from __future__ import annotations

import threading

import structlog

from .interfaces import HostSchedulerPort

logger = structlog.get_logger(__name__)


class InMemoryHostScheduler(HostSchedulerPort):
    """Registry of parked executions keyed by parent instance id."""

    def __init__(self) -> None:
        self._parked: dict[str, str] = {}
        self._lock = threading.Lock()

    def scheduler_park(self, instance_id: str, resume_event: str) -> None:
        """Park one execution under a resume event.

        Args:
            instance_id: Parent execution identifier.
            resume_event: Event name that wakes the execution.

        Returns:
            None: Execution is recorded as parked.

        Raises:
            ValueError: Raised when inputs are blank.
        """

        if not instance_id.strip():
            raise ValueError("instance_id must not be blank")
        if not resume_event.strip():
            raise ValueError("resume_event must not be blank")

        with self._lock:
            self._parked[instance_id] = resume_event
        logger.info("host_scheduler.parked", instance_id=instance_id, resume_event=resume_event)

    def scheduler_parked_event(self, instance_id: str) -> str | None:
        with self._lock:
            return self._parked.get(instance_id)

    def scheduler_release(self, instance_id: str) -> bool:
        with self._lock:
            released = self._parked.pop(instance_id, None) is not None
        if released:
            logger.info("host_scheduler.released", instance_id=instance_id)
        return released
