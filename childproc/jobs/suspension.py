"""Suspend/resume bridge for waits that outlive the parent's execution context.

The bridge is a two-state machine per parent execution. Its state is derived
from the persisted `SuspensionRecord` alone, so a freshly rebuilt context
observes the same state as the one that suspended:

* ACTIVE: no pending record. `bridge_suspend` is allowed.
* SUSPENDED: a pending record exists. `bridge_resume` is allowed.

A resume re-runs the wait on the recorded identifiers, removes the record and
aggregates with the options captured at suspension time.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Final, Mapping, Sequence

import structlog

from childproc.adapters import ProcessServicePort
from childproc.db import ExecutionStatePort
from childproc.domain import (
    AggregateOutcome,
    ExecutionContext,
    InvalidConfigError,
    SuspensionRecord,
    SuspensionStateError,
)

from .completion_waiter import CompletionWaiter
from .interfaces import HostSchedulerPort
from .job_config import JobConfig
from .result_aggregator import ResultAggregator
from .retry import FixedRetryPolicy

logger = structlog.get_logger(__name__)

SUSPENSION_RECORD_KEY: Final[str] = "__childProcessSuspend"
WAIT_CONDITION_TYPE: Final[str] = "PROCESS_COMPLETION"
WAIT_CONDITION_REASON: Final[str] = "Waiting for a child process to end"


class SuspensionState(str, Enum):
    """Bridge state of one parent execution."""

    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


def job_suspension_build_wait_condition(instance_ids: Sequence[str], resume_event: str) -> dict[str, Any]:
    """Build the wait condition document registered with the remote service."""

    return {
        "type": WAIT_CONDITION_TYPE,
        "reason": WAIT_CONDITION_REASON,
        "processes": list(instance_ids),
        "resumeEvent": resume_event,
    }


class SuspendResumeBridge:
    """Hands a wait over to the host and finishes it when the host resumes."""

    def __init__(
        self,
        process_service: ProcessServicePort,
        execution_state: ExecutionStatePort,
        host_scheduler: HostSchedulerPort,
        completion_waiter: CompletionWaiter,
        result_aggregator: ResultAggregator,
        retry_policy: FixedRetryPolicy | None = None,
        resume_event_name: str = "childProcess",
    ):
        """Initialize suspend/resume bridge.

        Args:
            process_service: Remote process service port.
            execution_state: Durable execution variable state.
            host_scheduler: Host that parks and wakes executions.
            completion_waiter: Waiter used on resume.
            result_aggregator: Aggregator used on resume.
            retry_policy: Retry policy for wait-condition registration.
            resume_event_name: Event name used to park executions.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies are missing or the event name is blank.
        """

        for dependency_name, dependency in (
            ("process_service", process_service),
            ("execution_state", execution_state),
            ("host_scheduler", host_scheduler),
            ("completion_waiter", completion_waiter),
            ("result_aggregator", result_aggregator),
        ):
            if dependency is None:
                raise ValueError(f"{dependency_name} must not be None")
        if not resume_event_name.strip():
            raise ValueError("resume_event_name must not be blank")

        self._process_service = process_service
        self._execution_state = execution_state
        self._host_scheduler = host_scheduler
        self._completion_waiter = completion_waiter
        self._result_aggregator = result_aggregator
        self._retry_policy = retry_policy or FixedRetryPolicy()
        self._resume_event_name = resume_event_name.strip()

    def bridge_load_record(self, instance_id: str) -> SuspensionRecord | None:
        """Load the persisted record of one parent execution.

        Args:
            instance_id: Parent execution identifier.

        Returns:
            SuspensionRecord | None: Persisted record, None when absent.

        Raises:
            SuspensionStateError: Raised when the persisted payload is malformed.
        """

        payload = self._execution_state.state_get(instance_id, SUSPENSION_RECORD_KEY)
        if payload is None:
            return None
        if not isinstance(payload, Mapping):
            raise SuspensionStateError(f"suspension record of {instance_id} must be a mapping")
        try:
            return SuspensionRecord.record_from_payload(payload)
        except ValueError as error:
            raise SuspensionStateError(f"suspension record of {instance_id} is malformed: {error}") from error

    def bridge_state(self, instance_id: str) -> SuspensionState:
        """Return the bridge state derived from the persisted record."""

        record = self.bridge_load_record(instance_id)
        if record is not None and record.pending:
            return SuspensionState.SUSPENDED
        return SuspensionState.ACTIVE

    def bridge_suspend(
        self,
        ctx: ExecutionContext,
        instance_ids: Sequence[str],
        config: JobConfig,
    ) -> SuspensionRecord:
        """Register a wait condition, persist the record and park the parent.

        Returns without blocking on the children.

        Args:
            ctx: Parent execution context.
            instance_ids: Children to wait for.
            config: Job configuration carrying failure handling and output options.

        Returns:
            SuspensionRecord: Persisted record.

        Raises:
            InvalidConfigError: Raised when `instance_ids` is empty.
            SuspensionStateError: Raised when the parent is already suspended.
            RemoteCallFailedError: Raised when wait-condition registration exhausted its retries.
        """

        if self.bridge_state(ctx.instance_id) is SuspensionState.SUSPENDED:
            raise SuspensionStateError(f"execution {ctx.instance_id} is already suspended")

        wait_set = tuple(dict.fromkeys(str(instance_id) for instance_id in instance_ids))
        if not wait_set:
            raise InvalidConfigError("cannot suspend on an empty set of processes")

        condition = job_suspension_build_wait_condition(wait_set, self._resume_event_name)
        self._retry_policy.retry_call(
            lambda: self._process_service.service_set_wait_condition(ctx.instance_id, condition),
            operation_label="set_wait_condition",
        )

        record = SuspensionRecord(
            wait_set=wait_set,
            resume_event=self._resume_event_name,
            pending=True,
            ignore_failures=config.ignore_failures,
            out_vars=config.out_vars,
        )
        self._execution_state.state_set(ctx.instance_id, SUSPENSION_RECORD_KEY, record.record_to_payload())
        self._host_scheduler.scheduler_park(ctx.instance_id, record.resume_event)
        logger.info(
            "child_process.suspended",
            instance_id=ctx.instance_id,
            wait_set=list(wait_set),
            resume_event=record.resume_event,
        )
        return record

    def bridge_resume(self, ctx: ExecutionContext, event: str | None = None) -> AggregateOutcome:
        """Finish a suspended wait.

        The record is removed only after the wait completes, so a resume that
        fails while waiting can be delivered again.

        Args:
            ctx: Rebuilt parent execution context.
            event: Delivered event name, None to accept the recorded one.

        Returns:
            AggregateOutcome: Aggregated outcome using the recorded options.

        Raises:
            SuspensionStateError: Raised when nothing is pending or the event does not match.
            WaitTimeoutError: Raised when the wait times out.
            RemoteCallFailedError: Raised when status queries fail.
            AggregateFailureError: Raised when children failed and failures are not ignored.
        """

        record = self.bridge_load_record(ctx.instance_id)
        if record is None or not record.pending:
            raise SuspensionStateError(f"execution {ctx.instance_id} has no pending suspension")
        if event is not None and event != record.resume_event:
            raise SuspensionStateError(
                f"execution {ctx.instance_id} waits for event {record.resume_event!r}, got {event!r}"
            )

        logger.info("child_process.resuming", instance_id=ctx.instance_id, wait_set=list(record.wait_set))
        result = self._completion_waiter.waiter_await_all(record.wait_set)

        self._execution_state.state_remove(ctx.instance_id, SUSPENSION_RECORD_KEY)
        self._host_scheduler.scheduler_release(ctx.instance_id)
        return self._result_aggregator.aggregator_collect(
            result,
            ignore_failures=record.ignore_failures,
            out_vars=record.out_vars,
        )
