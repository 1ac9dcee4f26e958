"""Tests for wire request and submission field translation."""

from childproc.jobs import JobConfig, job_config_build, job_request_build, job_request_build_submit_fields


def test_jobs_request_omits_absent_optional_values() -> None:
    """Send only keys that carry a value.

    Returns:
        None: Assertions validate the minimal wire request.

    Raises:
        AssertionError: Raised when empty values leak into the request.
    """

    assert job_request_build(JobConfig(project="p")) == {}


def test_jobs_request_renders_every_supported_key() -> None:
    config = job_config_build(
        defaults=None,
        params={
            "project": "p",
            "entryPoint": "main",
            "activeProfiles": "prod, eu",
            "tags": ["b", "a"],
            "arguments": {"x": 1},
            "exclusiveExec": True,
            "disableOnCancel": True,
            "disableOnFailure": True,
            "outVars": ["result", "count"],
        },
    )

    assert job_request_build(config) == {
        "activeProfiles": ["eu", "prod"],
        "entryPoint": "main",
        "exclusiveExec": True,
        "tags": ["a", "b"],
        "arguments": {"x": 1},
        "disableOnCancel": True,
        "disableOnFailure": True,
        "outExpressions": ["result", "count"],
    }


def test_jobs_request_submit_fields_skip_absent_values_and_carry_lineage() -> None:
    config = job_config_build(
        defaults=None,
        params={
            "project": "p",
            "repo": "r",
            "repoBranchOrTag": "release",
            "startAt": "2026-01-01T00:00:00Z",
        },
        org_default="acme",
    )

    fields = job_request_build_submit_fields(config, parent_instance_id="parent-1")

    assert fields == {
        "org": "acme",
        "project": "p",
        "repo": "r",
        "repoBranchOrTag": "release",
        "startAt": "2026-01-01T00:00:00Z",
        "parentInstanceId": "parent-1",
    }
    assert "parentInstanceId" not in job_request_build_submit_fields(config)


def test_jobs_request_submit_fields_read_parent_from_config() -> None:
    config = JobConfig(project="p", parent_instance_id="parent-1")

    assert job_request_build_submit_fields(config)["parentInstanceId"] == "parent-1"
    assert job_request_build_submit_fields(config, parent_instance_id="parent-2")["parentInstanceId"] == "parent-2"
