"""Tests for the process launcher."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import ScriptedProcessService

from childproc.domain import InvalidConfigError, PayloadNotFoundError, ProcessStatus
from childproc.jobs import JobConfig, ProcessLauncher


def test_jobs_launcher_start_child_records_parent(process_service: ScriptedProcessService, tmp_path: Path) -> None:
    """Submit a child with the parent identifier in its fields.

    Args:
        process_service: Scripted process service fixture.
        tmp_path: Work directory fixture.

    Returns:
        None: Assertions validate the submission.

    Raises:
        AssertionError: Raised when the parent is not sent.
    """

    handle = ProcessLauncher(process_service).launcher_start_child(JobConfig(project="p"), tmp_path, " parent-1 ")

    assert handle.instance_id == "child-1"
    assert handle.status is ProcessStatus.RUNNING
    assert process_service.submissions[0]["fields"]["parentInstanceId"] == "parent-1"
    assert process_service.submissions[0]["payload_path"] is None


def test_jobs_launcher_start_new_omits_parent(process_service: ScriptedProcessService, tmp_path: Path) -> None:
    config = JobConfig(project="p", parent_instance_id="stale-parent")

    ProcessLauncher(process_service).launcher_start_new(config, tmp_path)

    assert "parentInstanceId" not in process_service.submissions[0]["fields"]


def test_jobs_launcher_start_child_rejects_blank_parent(
    process_service: ScriptedProcessService,
    tmp_path: Path,
) -> None:
    with pytest.raises(InvalidConfigError, match="parent_instance_id must not be blank"):
        ProcessLauncher(process_service).launcher_start_child(JobConfig(project="p"), tmp_path, "  ")

    assert process_service.submissions == []


def test_jobs_launcher_requires_payload_or_project(process_service: ScriptedProcessService, tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError, match="'payload' and/or 'project' are required"):
        ProcessLauncher(process_service).launcher_start_new(JobConfig(), tmp_path)


def test_jobs_launcher_rejects_missing_payload(process_service: ScriptedProcessService, tmp_path: Path) -> None:
    with pytest.raises(PayloadNotFoundError):
        ProcessLauncher(process_service).launcher_start_new(JobConfig(payload="missing.zip"), tmp_path)

    assert process_service.submissions == []


def test_jobs_launcher_fork_creates_instances_per_entry(process_service: ScriptedProcessService) -> None:
    configs = [JobConfig(entry_point="a", instances=2), JobConfig(entry_point="b", sync=True)]

    handles = ProcessLauncher(process_service).launcher_fork(configs, "parent-1")

    assert [handle.instance_id for handle in handles] == ["child-1", "child-2", "child-3"]
    assert [fork["parent_instance_id"] for fork in process_service.forks] == ["parent-1"] * 3
    assert [fork["sync"] for fork in process_service.forks] == [False, False, True]


def test_jobs_launcher_fork_rejects_empty_list(process_service: ScriptedProcessService) -> None:
    with pytest.raises(InvalidConfigError, match="can't be an empty list"):
        ProcessLauncher(process_service).launcher_fork([], "parent-1")
