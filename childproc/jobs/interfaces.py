"""Typed interfaces for job-layer orchestration responsibilities."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from childproc.domain import ExecutionContext


@dataclass(frozen=True)
class JobExecutionResult:
    """Result contract for one entry operation.

    Attributes:
        action: Normalized action name.
        status: Final execution state (`completed`, `suspended`, `failed`).
        instance_ids: Identifiers started, forked or killed by the operation.
        variables: Caller-visible variables written by the operation.
        warnings: Non-fatal warnings collected while executing.
        error_code: Deterministic error code for outer surfaces, None on success.
        error_message: Error text for outer surfaces, None on success.
    """

    action: str
    status: str
    instance_ids: tuple[str, ...] = ()
    variables: Mapping[str, Any] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    error_code: str | None = None
    error_message: str | None = None

    def result_to_payload(self) -> dict[str, Any]:
        """Render the result as a JSON-compatible payload for outer surfaces."""

        return {
            "action": self.action,
            "status": self.status,
            "instance_ids": list(self.instance_ids),
            "variables": dict(self.variables),
            "warnings": list(self.warnings),
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class JobOrchestratorPort(Protocol):
    """Port definition for dispatching child process entry operations."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the action names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported action names.

        Raises:
            RuntimeError: Raised when supported action metadata is unavailable.
        """

    def job_execute(self, ctx: ExecutionContext, action: str, params: Mapping[str, Any]) -> JobExecutionResult:
        """Execute one entry operation on behalf of a parent execution.

        Args:
            ctx: Parent execution context.
            action: Action name.
            params: Caller parameter mapping.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            OrchestratorError: Raised when the operation fails.
        """

    def job_resume(self, ctx: ExecutionContext, event: str | None = None) -> JobExecutionResult:
        """Resume a suspended parent execution.

        Args:
            ctx: Parent execution context.
            event: Delivered resume event name.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            OrchestratorError: Raised when the resumed wait fails.
        """


class HostSchedulerPort(Protocol):
    """Port definition for the host that parks and wakes parent executions."""

    def scheduler_park(self, instance_id: str, resume_event: str) -> None:
        """Park one execution until `resume_event` is delivered.

        Args:
            instance_id: Parent execution identifier.
            resume_event: Event name that wakes the execution.

        Returns:
            None: Execution is parked as a side effect.

        Raises:
            RuntimeError: Raised when the execution cannot be parked.
        """

    def scheduler_parked_event(self, instance_id: str) -> str | None:
        """Return the event a parked execution waits for.

        Args:
            instance_id: Parent execution identifier.

        Returns:
            str | None: Resume event name, None when not parked.

        Raises:
            RuntimeError: This interface does not require runtime errors.
        """

    def scheduler_release(self, instance_id: str) -> bool:
        """Release a parked execution.

        Args:
            instance_id: Parent execution identifier.

        Returns:
            bool: True when a parked execution was released.

        Raises:
            RuntimeError: This interface does not require runtime errors.
        """
