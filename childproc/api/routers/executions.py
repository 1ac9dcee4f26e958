"""Execution API router for entry operations and resume event delivery."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from childproc.domain import ExecutionContext, OrchestratorError
from childproc.jobs import (
    ChildProcessOrchestrator,
    job_error_code,
    job_result_from_error,
)

_ERROR_STATUS_CODES: dict[str, int] = {
    "invalid_config": status.HTTP_400_BAD_REQUEST,
    "payload_not_found": status.HTTP_400_BAD_REQUEST,
    "suspension_state": status.HTTP_409_CONFLICT,
    "aggregate_failure": status.HTTP_409_CONFLICT,
    "remote_call_failed": status.HTTP_502_BAD_GATEWAY,
    "wait_timeout": status.HTTP_504_GATEWAY_TIMEOUT,
}


class ExecutionActionRequest(BaseModel):
    """Request body for one entry operation."""

    model_config = ConfigDict(populate_by_name=True)

    params: dict[str, Any] = Field(default_factory=dict)
    work_dir: str | None = Field(default=None, alias="workDir")
    org_name: str | None = Field(default=None, alias="org")


class ExecutionResumeRequest(BaseModel):
    """Request body for resume event delivery."""

    model_config = ConfigDict(populate_by_name=True)

    event: str | None = None
    work_dir: str | None = Field(default=None, alias="workDir")
    org_name: str | None = Field(default=None, alias="org")


def api_create_executions_router(
    orchestrator: ChildProcessOrchestrator,
    default_work_dir: Path,
) -> APIRouter:
    """Create execution router with action, resume and suspension endpoints.

    Args:
        orchestrator: Job-layer child process orchestrator.
        default_work_dir: Work directory used when a request does not name one.

    Returns:
        APIRouter: Router exposing execution APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if orchestrator is None:
        raise ValueError("orchestrator must not be None")

    router = APIRouter(prefix="/executions", tags=["executions"])

    def _api_build_context(instance_id: str, work_dir: str | None, org_name: str | None) -> ExecutionContext:
        return ExecutionContext(
            instance_id=instance_id,
            work_dir=Path(work_dir) if work_dir else default_work_dir,
            org_name=org_name,
        )

    def _api_error_response(action: str, error: OrchestratorError) -> JSONResponse:
        result = job_result_from_error(action, error)
        return JSONResponse(
            content=result.result_to_payload(),
            status_code=_ERROR_STATUS_CODES.get(job_error_code(error), status.HTTP_500_INTERNAL_SERVER_ERROR),
        )

    @router.post("/{instance_id}/actions/{action}")
    def api_execution_action(instance_id: str, action: str, request: ExecutionActionRequest) -> JSONResponse:
        """Run one entry operation on behalf of a parent execution.

        Returns:
            JSONResponse: 200 when completed, 202 when the parent was suspended.

        Raises:
            RuntimeError: Orchestrator errors are converted into error payloads.
        """

        ctx = _api_build_context(instance_id, request.work_dir, request.org_name)
        try:
            result = orchestrator.job_execute(ctx, action, request.params)
        except OrchestratorError as error:
            return _api_error_response(action, error)

        response_status = status.HTTP_202_ACCEPTED if result.status == "suspended" else status.HTTP_200_OK
        return JSONResponse(content=result.result_to_payload(), status_code=response_status)

    @router.post("/{instance_id}/resume")
    def api_execution_resume(instance_id: str, request: ExecutionResumeRequest) -> JSONResponse:
        """Deliver a resume event to a suspended parent execution."""

        ctx = _api_build_context(instance_id, request.work_dir, request.org_name)
        try:
            result = orchestrator.job_resume(ctx, request.event)
        except OrchestratorError as error:
            return _api_error_response("resume", error)
        return JSONResponse(content=result.result_to_payload(), status_code=status.HTTP_200_OK)

    @router.get("/{instance_id}/suspension")
    def api_execution_suspension(instance_id: str) -> JSONResponse:
        """Return the bridge state and the persisted suspension record."""

        try:
            record = orchestrator.bridge.bridge_load_record(instance_id)
            state = orchestrator.bridge.bridge_state(instance_id)
        except OrchestratorError as error:
            return _api_error_response("suspension", error)

        payload = {
            "instance_id": instance_id,
            "state": state.value,
            "record": record.record_to_payload() if record is not None else None,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router
