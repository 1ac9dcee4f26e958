"""Project-native typed exceptions for child process orchestration failures."""

from __future__ import annotations

from typing import Sequence

from .models import ChildFailure


class OrchestratorError(Exception):
    """Base exception for orchestrator-level failures."""


class InvalidConfigError(OrchestratorError, ValueError):
    """Malformed or missing required configuration. Never retried."""


class PayloadNotFoundError(OrchestratorError, FileNotFoundError):
    """Local payload path precondition failed before submission.

    Attributes:
        payload_path: Resolved path that does not exist.
    """

    def __init__(self, message: str, payload_path: str | None = None):
        super().__init__(message)
        self.payload_path = payload_path


class RemoteCallFailedError(OrchestratorError, ConnectionError):
    """Transport or protocol failure talking to the remote process service.

    Attributes:
        status_code: Optional HTTP status code returned by the remote service.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class WaitTimeoutError(OrchestratorError, TimeoutError):
    """Local deadline exceeded while polling for terminal status.

    Attributes:
        instance_ids: Identifiers still non-terminal when the deadline elapsed.
    """

    def __init__(self, message: str, instance_ids: Sequence[str] = ()):
        super().__init__(message)
        self.instance_ids = tuple(instance_ids)


class AggregateFailureError(OrchestratorError, RuntimeError):
    """One or more children reached a failure terminal and failures were not ignored.

    Attributes:
        failures: Failed children, sorted by identifier.
    """

    def __init__(self, failures: Sequence[ChildFailure]):
        self.failures = tuple(failures)
        super().__init__("\n".join(failure.failure_render_line() for failure in self.failures))


class SuspensionStateError(OrchestratorError, RuntimeError):
    """Suspend or resume requested in a state that does not allow it."""
