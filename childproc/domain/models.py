"""Typed domain models shared across runtime layers.

This module provides the data contracts exchanged between the remote service
adapter, the job layer and the persistence layer: process status snapshots,
wait sets, suspension records and aggregate wait results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping


class ProcessStatus(str, Enum):
    """Process status values tracked by the orchestrator.

    The remote service knows more lifecycle states than these. Non-terminal
    states outside this set are folded into `RUNNING` by `domain_parse_process_status`.
    """

    RUNNING = "RUNNING"
    SUSPENDED = "SUSPENDED"
    FINISHED = "FINISHED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    TIMED_OUT = "TIMED_OUT"

    def status_is_terminal(self) -> bool:
        """Return whether the process cannot transition any further."""

        return self in _TERMINAL_STATUSES

    def status_is_failure(self) -> bool:
        """Return whether the status is a failure terminal."""

        return self in FAILURE_STATUSES


FAILURE_STATUSES: frozenset[ProcessStatus] = frozenset(
    {ProcessStatus.FAILED, ProcessStatus.CANCELLED, ProcessStatus.TIMED_OUT}
)
_TERMINAL_STATUSES: frozenset[ProcessStatus] = FAILURE_STATUSES | {ProcessStatus.FINISHED}
_REMOTE_NON_TERMINAL_STATUSES: frozenset[str] = frozenset(
    {"NEW", "PREPARING", "ENQUEUED", "WAITING", "STARTING", "RESUMING"}
)


def domain_parse_process_status(value: object) -> ProcessStatus:
    """Parse one remote status value into `ProcessStatus`.

    Args:
        value: Raw status value reported by the remote service.

    Returns:
        ProcessStatus: Normalized status.

    Raises:
        ValueError: Raised when the value is not a known remote status.
    """

    normalized_value = str(value or "").strip().upper()
    if normalized_value in _REMOTE_NON_TERMINAL_STATUSES:
        return ProcessStatus.RUNNING
    try:
        return ProcessStatus(normalized_value)
    except ValueError as error:
        raise ValueError(f"unknown process status: {value!r}") from error


@dataclass(frozen=True)
class ProcessHandle:
    """Last-known snapshot of one remote process.

    Attributes:
        instance_id: Remote-assigned unique process identifier.
        status: Last-known process status.
        meta: Last-known remote process metadata (may be empty).
    """

    instance_id: str
    status: ProcessStatus
    meta: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def handle_is_terminal(self) -> bool:
        """Return whether the snapshot holds a terminal status."""

        return self.status.status_is_terminal()


@dataclass(frozen=True)
class WaitSet:
    """Identifiers awaited together with an optional absolute deadline.

    Attributes:
        instance_ids: Ordered process identifiers.
        deadline: Optional absolute deadline on the waiter's monotonic clock.
    """

    instance_ids: tuple[str, ...]
    deadline: float | None = None

    def wait_set_is_expired(self, now: float) -> bool:
        """Return whether the deadline has elapsed at `now`."""

        return self.deadline is not None and now >= self.deadline


@dataclass(frozen=True)
class SuspensionRecord:
    """Durable marker stored against the parent execution while suspended.

    Attributes:
        wait_set: Identifiers the parent is waiting on.
        resume_event: Event name that resumes the parent execution.
        pending: Whether resumption is still pending.
        ignore_failures: Whether child failures are ignored on resume.
        out_vars: Output variables requested by the caller.
    """

    wait_set: tuple[str, ...]
    resume_event: str
    pending: bool = True
    ignore_failures: bool = False
    out_vars: tuple[str, ...] = ()

    def record_to_payload(self) -> dict[str, Any]:
        """Render the record as a JSON-compatible payload.

        Returns:
            dict[str, Any]: Serializable record payload.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return {
            "waitSet": list(self.wait_set),
            "resumeEvent": self.resume_event,
            "pending": self.pending,
            "ignoreFailures": self.ignore_failures,
            "outVars": list(self.out_vars),
        }

    @classmethod
    def record_from_payload(cls, payload: Mapping[str, Any]) -> SuspensionRecord:
        """Rebuild a record from its persisted payload.

        Args:
            payload: Payload produced by `record_to_payload`.

        Returns:
            SuspensionRecord: Rebuilt record.

        Raises:
            ValueError: Raised when the payload is malformed.
        """

        wait_set = payload.get("waitSet")
        resume_event = payload.get("resumeEvent")
        if not isinstance(wait_set, list) or not wait_set:
            raise ValueError("suspension record waitSet must be a non-empty list")
        if not isinstance(resume_event, str) or not resume_event.strip():
            raise ValueError("suspension record resumeEvent must be a non-empty string")
        return cls(
            wait_set=tuple(str(instance_id) for instance_id in wait_set),
            resume_event=resume_event,
            pending=bool(payload.get("pending", True)),
            ignore_failures=bool(payload.get("ignoreFailures", False)),
            out_vars=tuple(str(name) for name in payload.get("outVars", ())),
        )


@dataclass(frozen=True)
class AggregateResult:
    """Terminal snapshots collected by one wait, keyed by identifier.

    Attributes:
        handles: Mapping from identifier to terminal process handle.
    """

    handles: Mapping[str, ProcessHandle]

    def result_failed_handles(self) -> list[ProcessHandle]:
        """Return failure-terminal handles sorted by identifier."""

        return [
            self.handles[instance_id]
            for instance_id in sorted(self.handles)
            if self.handles[instance_id].status.status_is_failure()
        ]

    def result_succeeded_ids(self) -> list[str]:
        """Return identifiers that reached `FINISHED`, sorted."""

        return [
            instance_id
            for instance_id in sorted(self.handles)
            if self.handles[instance_id].status is ProcessStatus.FINISHED
        ]


@dataclass(frozen=True)
class ChildFailure:
    """One failed child with extracted error detail.

    Attributes:
        instance_id: Child process identifier.
        status: Failure-terminal status.
        error_detail: Extracted error detail, empty when none was reported.
    """

    instance_id: str
    status: ProcessStatus
    error_detail: Mapping[str, Any]

    def failure_render_line(self) -> str:
        """Render the failure as one human-readable line."""

        error_message = f"(error: {dict(self.error_detail)})" if self.error_detail else ""
        return f"Child process {self.instance_id} {self.status.value} {error_message}".rstrip()


@dataclass(frozen=True)
class AggregateOutcome:
    """Aggregator decision for one completed wait.

    Attributes:
        succeeded_ids: Identifiers that reached `FINISHED`.
        ignored_failures: Failures logged and skipped because failures were ignored.
        outputs: Output-variable bundles keyed by successful child identifier.
    """

    succeeded_ids: tuple[str, ...]
    ignored_failures: tuple[ChildFailure, ...] = ()
    outputs: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @property
    def output_variables(self) -> dict[str, Any]:
        """Return the sole successful child's bundle, or an empty bundle."""

        if len(self.outputs) != 1:
            return {}
        return dict(next(iter(self.outputs.values())))


@dataclass(frozen=True)
class KillOutcome:
    """Result of one kill request.

    Attributes:
        instance_id: Killed process identifier.
        confirmed: Whether a terminal status was observed within the kill wait bound.
        warning: Warning text when confirmation timed out.
    """

    instance_id: str
    confirmed: bool
    warning: str | None = None


@dataclass(frozen=True)
class ExecutionContext:
    """Parent execution as seen by the orchestrator.

    Attributes:
        instance_id: Identifier of the running parent process.
        work_dir: Parent working directory used to resolve payload paths.
        org_name: Organization of the parent's project, used as default org.
    """

    instance_id: str
    work_dir: Path
    org_name: str | None = None


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str
