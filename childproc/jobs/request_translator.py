"""Translation of `JobConfig` into remote wire request documents."""

from __future__ import annotations

from typing import Any

from .job_config import JobConfig


def job_request_build(config: JobConfig) -> dict[str, Any]:
    """Build the wire request document for a start or fork submission.

    Optional values are omitted rather than sent empty. Set-valued fields are
    emitted as sorted lists.

    Args:
        config: Validated job configuration.

    Returns:
        dict[str, Any]: JSON-compatible request document.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    request: dict[str, Any] = {}
    if config.active_profiles:
        request["activeProfiles"] = sorted(config.active_profiles)
    if config.entry_point is not None:
        request["entryPoint"] = config.entry_point
    if config.exclusive_exec is not None:
        request["exclusiveExec"] = config.exclusive_exec
    if config.tags:
        request["tags"] = sorted(config.tags)
    if config.arguments:
        request["arguments"] = dict(config.arguments)
    if config.disable_on_cancel:
        request["disableOnCancel"] = True
    if config.disable_on_failure:
        request["disableOnFailure"] = True
    if config.out_vars:
        request["outExpressions"] = list(config.out_vars)
    return request


def job_request_build_submit_fields(config: JobConfig, parent_instance_id: str | None = None) -> dict[str, str]:
    """Build the extra multipart fields sent alongside a new process submission.

    Args:
        config: Validated job configuration.
        parent_instance_id: Parent identifier, falls back to `config.parent_instance_id`.

    Returns:
        dict[str, str]: Form fields with absent values skipped.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    candidates = (
        ("org", config.org),
        ("project", config.project),
        ("repo", config.repo),
        ("repoBranchOrTag", config.repo_branch_or_tag),
        ("repoCommitId", config.repo_commit_id),
        ("startAt", config.start_at),
        ("parentInstanceId", parent_instance_id or config.parent_instance_id),
    )
    return {field_name: value for field_name, value in candidates if value is not None}
