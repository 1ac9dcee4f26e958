"""Process launcher for new, child and forked processes."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Sequence

import structlog

from childproc.adapters import ProcessServicePort
from childproc.domain import InvalidConfigError, ProcessHandle, ProcessStatus

from .job_config import JobConfig
from .payload import job_payload_prepare
from .request_translator import job_request_build, job_request_build_submit_fields

logger = structlog.get_logger(__name__)


class ProcessLauncher:
    """Submits processes to the remote service.

    Submissions are not retried; a failed submission surfaces as
    `RemoteCallFailedError` from the adapter.
    """

    def __init__(self, process_service: ProcessServicePort):
        """Initialize launcher.

        Args:
            process_service: Remote process service port.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when process_service is None.
        """

        if process_service is None:
            raise ValueError("process_service must not be None")
        self._process_service = process_service

    def launcher_start_new(self, config: JobConfig, work_dir: Path) -> ProcessHandle:
        """Start a process with no parent.

        Args:
            config: Job configuration built in START mode.
            work_dir: Directory used to resolve the payload path.

        Returns:
            ProcessHandle: Handle of the started process.

        Raises:
            PayloadNotFoundError: Raised when the payload path does not exist.
            RemoteCallFailedError: Raised when the submission fails.
        """

        return self._launcher_submit(replace(config, parent_instance_id=None), work_dir)

    def launcher_start_child(self, config: JobConfig, work_dir: Path, parent_instance_id: str) -> ProcessHandle:
        """Start a process recorded as a child of `parent_instance_id`.

        Args:
            config: Job configuration built in START mode.
            work_dir: Directory used to resolve the payload path.
            parent_instance_id: Parent process identifier.

        Returns:
            ProcessHandle: Handle of the started child.

        Raises:
            InvalidConfigError: Raised when the parent identifier is blank.
            PayloadNotFoundError: Raised when the payload path does not exist.
            RemoteCallFailedError: Raised when the submission fails.
        """

        if not parent_instance_id.strip():
            raise InvalidConfigError("parent_instance_id must not be blank")
        return self._launcher_submit(replace(config, parent_instance_id=parent_instance_id.strip()), work_dir)

    def launcher_fork(self, configs: Sequence[JobConfig], parent_instance_id: str) -> list[ProcessHandle]:
        """Fork the parent once per requested instance of every entry.

        Args:
            configs: Job configurations built in FORK mode.
            parent_instance_id: Process being forked.

        Returns:
            list[ProcessHandle]: Handles in submission order.

        Raises:
            InvalidConfigError: Raised when `configs` is empty or an entry has no entry point.
            RemoteCallFailedError: Raised when a fork submission fails.
        """

        if not configs:
            raise InvalidConfigError("'forks' can't be an empty list")
        if not parent_instance_id.strip():
            raise InvalidConfigError("parent_instance_id must not be blank")

        handles: list[ProcessHandle] = []
        for config in configs:
            if config.entry_point is None:
                raise InvalidConfigError("'entryPoint' is required")
            request = job_request_build(config)
            for _ in range(config.instances):
                logger.info("child_process.forking", parent_instance_id=parent_instance_id, sync=config.sync)
                instance_id = self._process_service.service_fork(parent_instance_id, request, config.sync)
                logger.info("child_process.forked", instance_id=instance_id, parent_instance_id=parent_instance_id)
                handles.append(ProcessHandle(instance_id=instance_id, status=ProcessStatus.RUNNING))
        return handles

    def _launcher_submit(self, config: JobConfig, work_dir: Path) -> ProcessHandle:
        parent_instance_id = config.parent_instance_id
        if config.payload is None and config.project is None:
            raise InvalidConfigError("'payload' and/or 'project' are required")

        request = job_request_build(config)
        fields = job_request_build_submit_fields(config)
        with job_payload_prepare(work_dir, config.payload) as payload_path:
            logger.info(
                "child_process.starting",
                parent_instance_id=parent_instance_id,
                project=config.project,
                repo=config.repo,
                payload=config.payload,
                sync=config.sync,
                target=self._process_service.service_label(),
            )
            instance_id = self._process_service.service_submit(request, payload_path, fields)

        logger.info("child_process.started", instance_id=instance_id, parent_instance_id=parent_instance_id)
        return ProcessHandle(instance_id=instance_id, status=ProcessStatus.RUNNING)
