"""Entry-operation dispatcher for child process lifecycle actions."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Final, Mapping, Sequence

import structlog

from childproc.adapters import ProcessServicePort
from childproc.db import ExecutionStatePort
from childproc.domain import (
    AggregateFailureError,
    AggregateOutcome,
    ExecutionContext,
    InvalidConfigError,
    OrchestratorError,
    PayloadNotFoundError,
    ProcessHandle,
    RemoteCallFailedError,
    SuspensionStateError,
    WaitTimeoutError,
)

from .completion_waiter import CompletionWaiter
from .interfaces import HostSchedulerPort, JobExecutionResult, JobOrchestratorPort
from .job_config import (
    INSTANCE_ID_KEY,
    SYNC_KEY,
    JobConfig,
    JobConfigMode,
    job_config_build,
    job_config_normalize_instance_ids,
    job_config_normalize_string_items,
    job_config_parse_flag,
)
from .kill_coordinator import KillCoordinator
from .launcher import ProcessLauncher
from .result_aggregator import ResultAggregator
from .retry import FixedRetryPolicy
from .suspension import SuspendResumeBridge, SuspensionState

logger = structlog.get_logger(__name__)

JOBS_VARIABLE: Final[str] = "jobs"
JOB_OUT_VARIABLE: Final[str] = "jobOut"
FORKS_KEY: Final[str] = "forks"

ACTION_START: Final[str] = "start"
ACTION_START_EXTERNAL: Final[str] = "start-external"
ACTION_FORK: Final[str] = "fork"
ACTION_KILL: Final[str] = "kill"
ACTION_RESUME: Final[str] = "resume"

STATUS_COMPLETED: Final[str] = "completed"
STATUS_SUSPENDED: Final[str] = "suspended"
STATUS_FAILED: Final[str] = "failed"

_ACTION_ALIASES: Final[dict[str, str]] = {
    "start": ACTION_START,
    "start-external": ACTION_START_EXTERNAL,
    "startexternal": ACTION_START_EXTERNAL,
    "start_external": ACTION_START_EXTERNAL,
    "fork": ACTION_FORK,
    "kill": ACTION_KILL,
}

_ERROR_CODES: Final[tuple[tuple[type[OrchestratorError], str], ...]] = (
    (PayloadNotFoundError, "payload_not_found"),
    (InvalidConfigError, "invalid_config"),
    (RemoteCallFailedError, "remote_call_failed"),
    (WaitTimeoutError, "wait_timeout"),
    (AggregateFailureError, "aggregate_failure"),
    (SuspensionStateError, "suspension_state"),
)

ProcessServiceFactory = Callable[[str | None, str], ProcessServicePort]


def job_error_code(error: OrchestratorError) -> str:
    """Return the deterministic error code for an orchestrator error.

    Args:
        error: Raised orchestrator error.

    Returns:
        str: Stable error code, `child_process_error` for unmapped subclasses.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    for error_type, error_code in _ERROR_CODES:
        if isinstance(error, error_type):
            return error_code
    return "child_process_error"


def job_result_from_error(action: str, error: OrchestratorError) -> JobExecutionResult:
    """Convert an orchestrator error into a failed result for outer surfaces."""

    return JobExecutionResult(
        action=action,
        status=STATUS_FAILED,
        error_code=job_error_code(error),
        error_message=str(error),
    )


def job_normalize_action(action: str) -> str:
    """Normalize an action name case-insensitively.

    Args:
        action: Raw action name.

    Returns:
        str: Canonical action name.

    Raises:
        InvalidConfigError: Raised for unsupported actions.
    """

    normalized_action = _ACTION_ALIASES.get(str(action).strip().lower())
    if normalized_action is None:
        raise InvalidConfigError(f"Unsupported action type: {action}")
    return normalized_action


@dataclass(frozen=True)
class _ServiceComponents:
    """Lifecycle components bound to one process service."""

    launcher: ProcessLauncher
    waiter: CompletionWaiter
    aggregator: ResultAggregator


class ChildProcessOrchestrator(JobOrchestratorPort):
    """Dispatches start, start-external, fork, kill and resume operations."""

    def __init__(
        self,
        process_service: ProcessServicePort,
        execution_state: ExecutionStatePort,
        host_scheduler: HostSchedulerPort,
        job_defaults: Mapping[str, Any] | None = None,
        retry_policy: FixedRetryPolicy | None = None,
        poll_interval_seconds: float = 5.0,
        kill_wait_timeout_seconds: float = 10.0,
        resume_event_name: str = "childProcess",
        service_factory: ProcessServiceFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize orchestrator dependencies.

        Args:
            process_service: Remote process service the parent runs on.
            execution_state: Durable execution variable state.
            host_scheduler: Host that parks and wakes executions.
            job_defaults: Process-level job defaults.
            retry_policy: Retry policy for status queries and wait-condition registration.
            poll_interval_seconds: Delay between status polls.
            kill_wait_timeout_seconds: Confirmation bound after a synchronous kill.
            resume_event_name: Event name used to park executions.
            service_factory: Builds a service for `(base_url, api_key)` on external starts.
            clock: Monotonic clock in seconds.
            sleep: Sleep function.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies are missing or values are invalid.
        """

        if process_service is None:
            raise ValueError("process_service must not be None")
        if execution_state is None:
            raise ValueError("execution_state must not be None")
        if host_scheduler is None:
            raise ValueError("host_scheduler must not be None")

        self._execution_state = execution_state
        self._job_defaults = dict(job_defaults or {})
        self._retry_policy = retry_policy or FixedRetryPolicy(sleep=sleep)
        self._poll_interval_seconds = poll_interval_seconds
        self._service_factory = service_factory
        self._clock = clock
        self._sleep = sleep

        self._process_service = process_service
        self._components = self._job_build_components(process_service)
        self._kill_coordinator = KillCoordinator(
            process_service=process_service,
            completion_waiter=self._components.waiter,
            kill_wait_timeout_seconds=kill_wait_timeout_seconds,
        )
        self._bridge = SuspendResumeBridge(
            process_service=process_service,
            execution_state=execution_state,
            host_scheduler=host_scheduler,
            completion_waiter=self._components.waiter,
            result_aggregator=self._components.aggregator,
            retry_policy=self._retry_policy,
            resume_event_name=resume_event_name,
        )

    @property
    def bridge(self) -> SuspendResumeBridge:
        """Suspend/resume bridge bound to the parent's process service."""

        return self._bridge

    def job_supported_names(self) -> tuple[str, ...]:
        """Return supported action names.

        Returns:
            tuple[str, ...]: Supported action names.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return (ACTION_START, ACTION_START_EXTERNAL, ACTION_FORK, ACTION_KILL)

    def job_execute(self, ctx: ExecutionContext, action: str, params: Mapping[str, Any]) -> JobExecutionResult:
        """Execute one entry operation.

        Args:
            ctx: Parent execution context.
            action: Action name (case-insensitive, `startExternal` accepted).
            params: Caller parameter mapping.

        Returns:
            JobExecutionResult: Completed or suspended result.

        Raises:
            InvalidConfigError: Raised for unsupported actions or invalid parameters.
            PayloadNotFoundError: Raised when a payload path does not exist.
            RemoteCallFailedError: Raised when a remote call fails.
            WaitTimeoutError: Raised when a wait times out.
            AggregateFailureError: Raised when children failed and failures are not ignored.
            SuspensionStateError: Raised for invalid suspension transitions.
        """

        normalized_action = job_normalize_action(action)
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise InvalidConfigError(f"params must be a mapping, got {type(params).__name__}")

        logger.info("child_process.action", action=normalized_action, instance_id=ctx.instance_id)
        if normalized_action == ACTION_START:
            return self._job_start(ctx, params)
        if normalized_action == ACTION_START_EXTERNAL:
            return self._job_start_external(ctx, params)
        if normalized_action == ACTION_FORK:
            return self._job_fork(ctx, params)
        return self._job_kill(params)

    def job_resume(self, ctx: ExecutionContext, event: str | None = None) -> JobExecutionResult:
        """Resume a suspended parent and finish its wait.

        Args:
            ctx: Rebuilt parent execution context.
            event: Delivered resume event name.

        Returns:
            JobExecutionResult: Completed result with `jobs` and `jobOut`.

        Raises:
            SuspensionStateError: Raised when nothing is pending or the event does not match.
            WaitTimeoutError: Raised when the wait times out.
            RemoteCallFailedError: Raised when status queries fail.
            AggregateFailureError: Raised when children failed and failures are not ignored.
        """

        return self._job_resume(ctx, event, action=ACTION_RESUME)

    def job_list_subprocesses(self, parent_instance_id: str, tags: Any = None) -> list[str]:
        """List children of a process, optionally filtered by tags.

        Args:
            parent_instance_id: Parent process identifier.
            tags: Comma separated string or collection of tags.

        Returns:
            list[str]: Child identifiers.

        Raises:
            InvalidConfigError: Raised for blank identifiers or invalid tag shapes.
            RemoteCallFailedError: Raised when the remote call fails.
        """

        normalized_parent_id = job_config_normalize_instance_ids(parent_instance_id)[0]
        normalized_tags = sorted(set(job_config_normalize_string_items(tags, "tags")))
        return self._process_service.service_list_children(normalized_parent_id, normalized_tags or None)

    def job_wait_for_completion(
        self,
        instance_ids: Sequence[str],
        timeout_seconds: float | None = None,
    ) -> dict[str, ProcessHandle]:
        """Wait for processes managed directly by the caller.

        Args:
            instance_ids: Identifiers to await.
            timeout_seconds: Optional bound for the whole set.

        Returns:
            dict[str, ProcessHandle]: Terminal handles keyed by identifier.

        Raises:
            InvalidConfigError: Raised for invalid identifiers or timeout.
            WaitTimeoutError: Raised when any member is still running at the deadline.
            RemoteCallFailedError: Raised when status queries fail.
        """

        normalized_ids = job_config_normalize_instance_ids(list(instance_ids))
        return dict(self._components.waiter.waiter_await_all(normalized_ids, timeout_seconds).handles)

    def _job_start(self, ctx: ExecutionContext, params: Mapping[str, Any]) -> JobExecutionResult:
        if self._bridge.bridge_state(ctx.instance_id) is SuspensionState.SUSPENDED:
            return self._job_resume(ctx, event=None, action=ACTION_START)

        config = job_config_build(self._job_defaults, params, mode=JobConfigMode.START, org_default=ctx.org_name)
        handle = self._components.launcher.launcher_start_child(config, ctx.work_dir, ctx.instance_id)
        return self._job_after_start(ctx, ACTION_START, config, [handle.instance_id], self._components, allow_suspend=True)

    def _job_start_external(self, ctx: ExecutionContext, params: Mapping[str, Any]) -> JobExecutionResult:
        config = job_config_build(self._job_defaults, params, mode=JobConfigMode.START, org_default=ctx.org_name)
        if config.api_key is None:
            raise InvalidConfigError("'apiKey' is required to start a process on an external instance")
        if config.sync and config.suspend:
            raise InvalidConfigError("'suspend' is not supported when starting a process on an external instance")
        if self._service_factory is None:
            raise InvalidConfigError("starting processes on external instances is not configured")

        external_service = self._service_factory(config.base_url, config.api_key)
        try:
            components = self._job_build_components(external_service)
            handle = components.launcher.launcher_start_new(config, ctx.work_dir)
            return self._job_after_start(
                ctx,
                ACTION_START_EXTERNAL,
                config,
                [handle.instance_id],
                components,
                allow_suspend=False,
            )
        finally:
            close = getattr(external_service, "close", None)
            if callable(close):
                close()

    def _job_after_start(
        self,
        ctx: ExecutionContext,
        action: str,
        config: JobConfig,
        jobs: list[str],
        components: _ServiceComponents,
        allow_suspend: bool,
    ) -> JobExecutionResult:
        """Store `jobs`, then suspend, wait or return depending on `sync` and `suspend`."""

        self._execution_state.state_set(ctx.instance_id, JOBS_VARIABLE, jobs)
        if not config.sync:
            return JobExecutionResult(
                action=action,
                status=STATUS_COMPLETED,
                instance_ids=tuple(jobs),
                variables={JOBS_VARIABLE: list(jobs)},
            )

        if config.suspend and allow_suspend:
            self._bridge.bridge_suspend(ctx, jobs, config)
            return JobExecutionResult(
                action=action,
                status=STATUS_SUSPENDED,
                instance_ids=tuple(jobs),
                variables={JOBS_VARIABLE: list(jobs)},
            )

        result = components.waiter.waiter_await_all(jobs)
        outcome = components.aggregator.aggregator_collect(
            result,
            ignore_failures=config.ignore_failures,
            out_vars=config.out_vars,
        )
        return self._job_complete_wait(ctx, action, jobs, outcome)

    def _job_resume(self, ctx: ExecutionContext, event: str | None, action: str) -> JobExecutionResult:
        record = self._bridge.bridge_load_record(ctx.instance_id)
        if record is None or not record.pending:
            raise SuspensionStateError(f"execution {ctx.instance_id} has no pending suspension")

        outcome = self._bridge.bridge_resume(ctx, event)
        return self._job_complete_wait(ctx, action, list(record.wait_set), outcome)

    def _job_complete_wait(
        self,
        ctx: ExecutionContext,
        action: str,
        jobs: list[str],
        outcome: AggregateOutcome,
    ) -> JobExecutionResult:
        job_out = outcome.output_variables
        self._execution_state.state_set(ctx.instance_id, JOB_OUT_VARIABLE, job_out)
        return JobExecutionResult(
            action=action,
            status=STATUS_COMPLETED,
            instance_ids=tuple(jobs),
            variables={JOBS_VARIABLE: list(jobs), JOB_OUT_VARIABLE: job_out},
            warnings=tuple(failure.failure_render_line() for failure in outcome.ignored_failures),
        )

    def _job_fork(self, ctx: ExecutionContext, params: Mapping[str, Any]) -> JobExecutionResult:
        """Fork the parent once per instance of every `forks` entry.

        Without `forks` a single entry built from the parameters is used. Fork
        submissions never wait locally; `sync` is passed to the remote service.
        """

        forks = params.get(FORKS_KEY)
        if forks is None:
            entries: list[Mapping[str, Any] | None] = [None]
        elif isinstance(forks, (list, tuple)):
            entries = list(forks)
        else:
            raise InvalidConfigError(f"'{FORKS_KEY}' must be a list of mappings: {forks!r}")
        if not entries:
            raise InvalidConfigError(f"'{FORKS_KEY}' can't be an empty list")

        fork_params = {key: value for key, value in params.items() if key != FORKS_KEY}
        configs = [
            job_config_build(self._job_defaults, fork_params, entry, mode=JobConfigMode.FORK, org_default=ctx.org_name)
            for entry in entries
        ]
        handles = self._components.launcher.launcher_fork(configs, ctx.instance_id)
        jobs = [handle.instance_id for handle in handles]
        self._execution_state.state_set(ctx.instance_id, JOBS_VARIABLE, jobs)
        return JobExecutionResult(
            action=ACTION_FORK,
            status=STATUS_COMPLETED,
            instance_ids=tuple(jobs),
            variables={JOBS_VARIABLE: jobs},
        )

    def _job_kill(self, params: Mapping[str, Any]) -> JobExecutionResult:
        merged = {**self._job_defaults, **params}
        instance_ids = job_config_normalize_instance_ids(merged.get(INSTANCE_ID_KEY))
        outcomes = self._kill_coordinator.kill_many(instance_ids, sync=job_config_parse_flag(merged, SYNC_KEY))
        return JobExecutionResult(
            action=ACTION_KILL,
            status=STATUS_COMPLETED,
            instance_ids=instance_ids,
            warnings=tuple(outcome.warning for outcome in outcomes if outcome.warning),
        )

    def _job_build_components(self, process_service: ProcessServicePort) -> _ServiceComponents:
        waiter = CompletionWaiter(
            process_service=process_service,
            retry_policy=self._retry_policy,
            poll_interval_seconds=self._poll_interval_seconds,
            clock=self._clock,
            sleep=self._sleep,
        )
        return _ServiceComponents(
            launcher=ProcessLauncher(process_service),
            waiter=waiter,
            aggregator=ResultAggregator(process_service),
        )
