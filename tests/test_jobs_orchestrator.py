"""Tests for the entry-operation orchestrator."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeClock, ScriptedProcessService

from childproc.db import InMemoryExecutionStateService
from childproc.domain import (
    AggregateFailureError,
    ExecutionContext,
    InvalidConfigError,
    PayloadNotFoundError,
    ProcessStatus,
    RemoteCallFailedError,
    SuspensionStateError,
    WaitTimeoutError,
)
from childproc.jobs import (
    JOB_OUT_VARIABLE,
    JOBS_VARIABLE,
    SUSPENSION_RECORD_KEY,
    ChildProcessOrchestrator,
    FixedRetryPolicy,
    InMemoryHostScheduler,
    job_error_code,
    job_normalize_action,
    job_result_from_error,
)


class _ClosableProcessService(ScriptedProcessService):
    """Scripted service that records when it is closed."""

    def __init__(self, clock: FakeClock, base_url: str | None, api_key: str):
        super().__init__(clock=clock)
        self.base_url = base_url
        self.api_key = api_key
        self.closed = False

    def close(self) -> None:
        self.closed = True


class _OrchestratorFixture:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(self, process_service: ScriptedProcessService, fake_clock: FakeClock, job_defaults=None):
        self.process_service = process_service
        self.fake_clock = fake_clock
        self.execution_state = InMemoryExecutionStateService()
        self.host_scheduler = InMemoryHostScheduler()
        self.external_services: list[_ClosableProcessService] = []
        self.orchestrator = ChildProcessOrchestrator(
            process_service=process_service,
            execution_state=self.execution_state,
            host_scheduler=self.host_scheduler,
            job_defaults=job_defaults,
            retry_policy=FixedRetryPolicy(sleep=fake_clock.sleep),
            poll_interval_seconds=1.0,
            kill_wait_timeout_seconds=10.0,
            service_factory=self._build_external_service,
            clock=fake_clock,
            sleep=fake_clock.sleep,
        )

    def _build_external_service(self, base_url: str | None, api_key: str) -> _ClosableProcessService:
        external_service = _ClosableProcessService(self.fake_clock, base_url, api_key)
        self.external_services.append(external_service)
        return external_service


@pytest.fixture
def runtime(process_service: ScriptedProcessService, fake_clock: FakeClock) -> _OrchestratorFixture:
    return _OrchestratorFixture(process_service, fake_clock)


@pytest.fixture
def ctx(tmp_path: Path) -> ExecutionContext:
    (tmp_path / "flow.zip").write_bytes(b"zip-bytes")
    return ExecutionContext(instance_id="parent-1", work_dir=tmp_path, org_name="acme")


def test_jobs_orchestrator_sync_start_waits_for_child(runtime: _OrchestratorFixture, ctx: ExecutionContext) -> None:
    """Start one child from a payload archive and wait for it to finish.

    Args:
        runtime: Orchestrator wired to in-memory collaborators.
        ctx: Parent execution context with a payload archive.

    Returns:
        None: Assertions validate submission and completion.

    Raises:
        AssertionError: Raised when the result or submission is wrong.
    """

    runtime.process_service.status_scripts = {"child-1": [ProcessStatus.RUNNING, ProcessStatus.FINISHED]}

    result = runtime.orchestrator.job_execute(
        ctx,
        "start",
        {"payload": "flow.zip", "sync": True, "instances": 1},
    )

    assert result.status == "completed"
    assert result.instance_ids == ("child-1",)
    assert result.variables == {JOBS_VARIABLE: ["child-1"], JOB_OUT_VARIABLE: {}}
    assert result.warnings == ()
    submission = runtime.process_service.submissions[0]
    assert submission["payload_bytes"] == b"zip-bytes"
    assert submission["fields"] == {"org": "acme", "parentInstanceId": "parent-1"}
    assert runtime.execution_state.state_get("parent-1", JOBS_VARIABLE) == ["child-1"]
    assert runtime.execution_state.state_get("parent-1", JOB_OUT_VARIABLE) == {}


def test_jobs_orchestrator_async_start_returns_without_waiting(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    result = runtime.orchestrator.job_execute(ctx, "START", {"project": "p", "arguments": {"x": 1}})

    assert result.status == "completed"
    assert result.variables == {JOBS_VARIABLE: ["child-1"]}
    assert runtime.process_service.status_calls == []
    assert runtime.process_service.submissions[0]["request"] == {"arguments": {"x": 1}}
    assert runtime.execution_state.state_get("parent-1", JOB_OUT_VARIABLE) is None


def test_jobs_orchestrator_sync_start_collects_output_variables(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    runtime.process_service.artifacts = {("child-1", "out.json"): b'{"result": 42}'}

    result = runtime.orchestrator.job_execute(ctx, "start", {"project": "p", "sync": True, "outVars": ["result"]})

    assert result.variables[JOB_OUT_VARIABLE] == {"result": 42}
    assert runtime.process_service.submissions[0]["request"] == {"outExpressions": ["result"]}


def test_jobs_orchestrator_uses_process_defaults(
    process_service: ScriptedProcessService,
    fake_clock: FakeClock,
    ctx: ExecutionContext,
) -> None:
    runtime = _OrchestratorFixture(process_service, fake_clock, job_defaults={"project": "default", "tags": "nightly"})

    runtime.orchestrator.job_execute(ctx, "start", {})

    submission = process_service.submissions[0]
    assert submission["fields"]["project"] == "default"
    assert submission["request"] == {"tags": ["nightly"]}


def test_jobs_orchestrator_sync_failures_raise_unless_ignored(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    runtime.process_service.status_scripts = {"child-1": [ProcessStatus.FAILED], "child-2": [ProcessStatus.FAILED]}

    with pytest.raises(AggregateFailureError, match="Child process child-1 FAILED"):
        runtime.orchestrator.job_execute(ctx, "start", {"project": "p", "sync": True})

    result = runtime.orchestrator.job_execute(ctx, "start", {"project": "p", "sync": True, "ignoreFailures": True})

    assert result.status == "completed"
    assert result.warnings == ("Child process child-2 FAILED",)


def test_jobs_orchestrator_missing_payload_is_reported_before_submission(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    with pytest.raises(PayloadNotFoundError):
        runtime.orchestrator.job_execute(ctx, "start", {"payload": "missing.zip"})

    assert runtime.process_service.submissions == []


def test_jobs_orchestrator_suspend_then_start_again_resumes(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    runtime.process_service.status_scripts = {"child-1": [ProcessStatus.FINISHED]}
    params = {"project": "p", "sync": True, "suspend": True}

    suspended = runtime.orchestrator.job_execute(ctx, "start", params)

    assert suspended.status == "suspended"
    assert suspended.variables == {JOBS_VARIABLE: ["child-1"]}
    assert runtime.process_service.status_calls == []
    assert runtime.execution_state.state_get("parent-1", SUSPENSION_RECORD_KEY) is not None

    resumed = runtime.orchestrator.job_execute(ctx, "start", params)

    assert resumed.status == "completed"
    assert resumed.instance_ids == ("child-1",)
    assert len(runtime.process_service.submissions) == 1
    assert runtime.execution_state.state_get("parent-1", SUSPENSION_RECORD_KEY) is None


def test_jobs_orchestrator_resume_event_finishes_suspended_wait(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    runtime.orchestrator.job_execute(ctx, "start", {"project": "p", "sync": True, "suspend": True})

    result = runtime.orchestrator.job_resume(ctx, "childProcess")

    assert result.action == "resume"
    assert result.variables == {JOBS_VARIABLE: ["child-1"], JOB_OUT_VARIABLE: {}}

    with pytest.raises(SuspensionStateError):
        runtime.orchestrator.job_resume(ctx, "childProcess")


def test_jobs_orchestrator_fork_creates_every_instance(runtime: _OrchestratorFixture, ctx: ExecutionContext) -> None:
    result = runtime.orchestrator.job_execute(
        ctx,
        "fork",
        {
            "sync": True,
            "payload": "flow.zip",
            "forks": [{"entryPoint": "a", "instances": 2}, {"entryPoint": "b", "sync": False}],
        },
    )

    assert result.instance_ids == ("child-1", "child-2", "child-3")
    assert [fork["request"]["entryPoint"] for fork in runtime.process_service.forks] == ["a", "a", "b"]
    assert [fork["sync"] for fork in runtime.process_service.forks] == [True, True, False]
    assert {fork["parent_instance_id"] for fork in runtime.process_service.forks} == {"parent-1"}
    assert runtime.process_service.status_calls == []
    assert runtime.execution_state.state_get("parent-1", JOBS_VARIABLE) == ["child-1", "child-2", "child-3"]


def test_jobs_orchestrator_fork_without_list_uses_params(runtime: _OrchestratorFixture, ctx: ExecutionContext) -> None:
    result = runtime.orchestrator.job_execute(ctx, "fork", {"entryPoint": "main", "instances": 3})

    assert len(result.instance_ids) == 3


@pytest.mark.parametrize(
    ("params", "message"),
    [
        ({"forks": []}, "can't be an empty list"),
        ({"forks": "main"}, "must be a list"),
        ({"forks": [{"instances": 1}]}, "'entryPoint' is required"),
    ],
)
def test_jobs_orchestrator_fork_rejects_invalid_lists(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
    params: dict,
    message: str,
) -> None:
    with pytest.raises(InvalidConfigError, match=message):
        runtime.orchestrator.job_execute(ctx, "fork", params)

    assert runtime.process_service.forks == []


def test_jobs_orchestrator_kill_collects_confirmation_warnings(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    runtime.process_service.status_scripts = {"stuck": [ProcessStatus.RUNNING]}

    result = runtime.orchestrator.job_execute(ctx, "kill", {"instanceId": ["done", "stuck"], "sync": True})

    assert result.instance_ids == ("done", "stuck")
    assert runtime.process_service.kills == ["done", "stuck"]
    assert len(result.warnings) == 1
    assert "stuck" in result.warnings[0]


def test_jobs_orchestrator_kill_uses_default_sync_flag(
    process_service: ScriptedProcessService,
    fake_clock: FakeClock,
    ctx: ExecutionContext,
) -> None:
    runtime = _OrchestratorFixture(process_service, fake_clock, job_defaults={"sync": True})
    process_service.status_scripts = {"idB": [ProcessStatus.RUNNING]}

    result = runtime.orchestrator.job_execute(ctx, "kill", {"instanceId": "idB"})

    assert process_service.kills == ["idB"]
    assert process_service.status_calls
    assert len(result.warnings) == 1
    assert "idB" in result.warnings[0]


def test_jobs_orchestrator_start_external_uses_dedicated_service(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
) -> None:
    result = runtime.orchestrator.job_execute(
        ctx,
        "startExternal",
        {"project": "p", "apiKey": "secret", "baseUrl": "https://other.example", "sync": True},
    )

    external_service = runtime.external_services[0]
    assert result.action == "start-external"
    assert result.instance_ids == ("child-1",)
    assert external_service.base_url == "https://other.example"
    assert external_service.api_key == "secret"
    assert "parentInstanceId" not in external_service.submissions[0]["fields"]
    assert external_service.closed is True
    assert runtime.process_service.submissions == []


@pytest.mark.parametrize(
    ("params", "message"),
    [
        ({"project": "p"}, "'apiKey' is required"),
        ({"project": "p", "apiKey": "k", "sync": True, "suspend": True}, "'suspend' is not supported"),
    ],
)
def test_jobs_orchestrator_start_external_rejects_invalid_params(
    runtime: _OrchestratorFixture,
    ctx: ExecutionContext,
    params: dict,
    message: str,
) -> None:
    with pytest.raises(InvalidConfigError, match=message):
        runtime.orchestrator.job_execute(ctx, "start-external", params)

    assert runtime.external_services == []


def test_jobs_orchestrator_rejects_unknown_action(runtime: _OrchestratorFixture, ctx: ExecutionContext) -> None:
    with pytest.raises(InvalidConfigError, match="Unsupported action type: launch"):
        runtime.orchestrator.job_execute(ctx, "launch", {})


def test_jobs_orchestrator_lists_subprocesses(runtime: _OrchestratorFixture) -> None:
    runtime.process_service.children = {"parent-1": ["child-7", "child-8"]}

    assert runtime.orchestrator.job_list_subprocesses("parent-1", "a, b") == ["child-7", "child-8"]


def test_jobs_orchestrator_waits_for_caller_managed_ids(runtime: _OrchestratorFixture) -> None:
    handles = runtime.orchestrator.job_wait_for_completion(["x", "y"])

    assert sorted(handles) == ["x", "y"]
    assert all(handle.status is ProcessStatus.FINISHED for handle in handles.values())


def test_jobs_orchestrator_supported_names_and_aliases(runtime: _OrchestratorFixture) -> None:
    assert runtime.orchestrator.job_supported_names() == ("start", "start-external", "fork", "kill")
    assert job_normalize_action(" StartExternal ") == "start-external"


@pytest.mark.parametrize(
    ("error", "expected_code"),
    [
        (InvalidConfigError("bad"), "invalid_config"),
        (PayloadNotFoundError("missing"), "payload_not_found"),
        (RemoteCallFailedError("down", status_code=500), "remote_call_failed"),
        (WaitTimeoutError("slow", instance_ids=["a"]), "wait_timeout"),
        (AggregateFailureError([]), "aggregate_failure"),
        (SuspensionStateError("state"), "suspension_state"),
    ],
)
def test_jobs_error_codes_are_deterministic(error: Exception, expected_code: str) -> None:
    assert job_error_code(error) == expected_code

    payload = job_result_from_error("start", error).result_to_payload()
    assert payload["status"] == "failed"
    assert payload["error_code"] == expected_code
