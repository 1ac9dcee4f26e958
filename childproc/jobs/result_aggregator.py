"""Result aggregation for completed waits."""

from __future__ import annotations

import json
from typing import Any, Final, Mapping, Sequence

import structlog

from childproc.adapters import ProcessServicePort
from childproc.domain import (
    AggregateFailureError,
    AggregateOutcome,
    AggregateResult,
    ChildFailure,
    RemoteCallFailedError,
)

logger = structlog.get_logger(__name__)

OUTPUT_ARTIFACT_NAME: Final[str] = "out.json"


def job_result_extract_error_detail(meta: Mapping[str, Any]) -> dict[str, Any]:
    """Extract the reported error detail from process metadata.

    Args:
        meta: Remote process metadata.

    Returns:
        dict[str, Any]: Content of `meta.out.lastError`, empty when absent.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    out = meta.get("out") if isinstance(meta, Mapping) else None
    if not isinstance(out, Mapping):
        return {}
    last_error = out.get("lastError")
    if last_error is None:
        return {}
    if isinstance(last_error, Mapping):
        return dict(last_error)
    return {"message": str(last_error)}


class ResultAggregator:
    """Turns an `AggregateResult` into an outcome or one merged failure."""

    def __init__(self, process_service: ProcessServicePort):
        if process_service is None:
            raise ValueError("process_service must not be None")
        self._process_service = process_service

    def aggregator_collect(
        self,
        result: AggregateResult,
        ignore_failures: bool = False,
        out_vars: Sequence[str] = (),
    ) -> AggregateOutcome:
        """Decide the outcome of one completed wait.

        Args:
            result: Terminal handles of the wait.
            ignore_failures: Whether failures are logged instead of raised.
            out_vars: Requested output variables; bundles are downloaded only when non-empty.

        Returns:
            AggregateOutcome: Succeeded ids, ignored failures and output bundles.

        Raises:
            AggregateFailureError: Raised with every failure, sorted by id, when failures are not ignored.
            RemoteCallFailedError: Raised when an output artifact download fails.
        """

        failures = [
            ChildFailure(
                instance_id=handle.instance_id,
                status=handle.status,
                error_detail=job_result_extract_error_detail(handle.meta),
            )
            for handle in result.result_failed_handles()
        ]

        if failures and not ignore_failures:
            logger.error("child_process.aggregate_failure", failed_ids=[failure.instance_id for failure in failures])
            raise AggregateFailureError(failures)

        for failure in failures:
            logger.warning(
                "child_process.ignored_failure",
                instance_id=failure.instance_id,
                status=failure.status.value,
                error=dict(failure.error_detail),
            )

        succeeded_ids = result.result_succeeded_ids()
        outputs: dict[str, dict[str, Any]] = {}
        if out_vars:
            for instance_id in succeeded_ids:
                outputs[instance_id] = self._aggregator_download_outputs(instance_id)

        return AggregateOutcome(
            succeeded_ids=tuple(succeeded_ids),
            ignored_failures=tuple(failures),
            outputs=outputs,
        )

    def _aggregator_download_outputs(self, instance_id: str) -> dict[str, Any]:
        """Download and decode one child's output variables.

        Args:
            instance_id: Successful child identifier.

        Returns:
            dict[str, Any]: Output bundle, empty when the artifact does not exist.

        Raises:
            RemoteCallFailedError: Raised when the download fails or the artifact is not a JSON object.
        """

        content = self._process_service.service_download_output_artifact(instance_id, OUTPUT_ARTIFACT_NAME)
        if content is None:
            return {}
        try:
            bundle = json.loads(content)
        except ValueError as error:
            raise RemoteCallFailedError(f"{OUTPUT_ARTIFACT_NAME} of {instance_id} is not valid JSON") from error
        if not isinstance(bundle, dict):
            raise RemoteCallFailedError(f"{OUTPUT_ARTIFACT_NAME} of {instance_id} must be a JSON object")
        return bundle
