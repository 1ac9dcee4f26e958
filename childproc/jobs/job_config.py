"""Job configuration builder for child process launches.

A job configuration is assembled from three layers of loosely-typed input:
process-level defaults, the caller's parameter mapping and per-call overrides
(one entry of a `forks` list, for example). Each layer may use deprecated key
aliases and heterogeneous shapes for multi-valued fields; this module is the
single place where those shapes are normalized into an immutable `JobConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Final, Mapping
from uuid import UUID

import structlog

from childproc.domain import InvalidConfigError

logger = structlog.get_logger(__name__)

PAYLOAD_KEY: Final[str] = "payload"
ARCHIVE_KEY: Final[str] = "archive"
PROJECT_KEY: Final[str] = "project"
REPO_KEY: Final[str] = "repo"
REPOSITORY_KEY: Final[str] = "repository"
REPO_BRANCH_OR_TAG_KEY: Final[str] = "repoBranchOrTag"
REPO_COMMIT_ID_KEY: Final[str] = "repoCommitId"
ORG_KEY: Final[str] = "org"
ENTRY_POINT_KEY: Final[str] = "entryPoint"
ARGUMENTS_KEY: Final[str] = "arguments"
TAGS_KEY: Final[str] = "tags"
ACTIVE_PROFILES_KEY: Final[str] = "activeProfiles"
INSTANCES_KEY: Final[str] = "instances"
INSTANCE_ID_KEY: Final[str] = "instanceId"
SYNC_KEY: Final[str] = "sync"
SUSPEND_KEY: Final[str] = "suspend"
IGNORE_FAILURES_KEY: Final[str] = "ignoreFailures"
OUT_VARS_KEY: Final[str] = "outVars"
DISABLE_ON_CANCEL_KEY: Final[str] = "disableOnCancel"
DISABLE_ON_FAILURE_KEY: Final[str] = "disableOnFailure"
EXCLUSIVE_EXEC_KEY: Final[str] = "exclusiveExec"
START_AT_KEY: Final[str] = "startAt"
API_KEY_KEY: Final[str] = "apiKey"
BASE_URL_KEY: Final[str] = "baseUrl"

_DEPRECATED_ALIASES: Final[tuple[tuple[str, str], ...]] = (
    (ARCHIVE_KEY, PAYLOAD_KEY),
    (REPOSITORY_KEY, REPO_KEY),
)


class JobConfigMode(str, Enum):
    """Validation mode applied when building a job configuration."""

    START = "start"
    FORK = "fork"


@dataclass(frozen=True)
class JobConfig:
    """Immutable, validated job configuration.

    Attributes:
        org: Target organization, defaults to the parent's organization.
        project: Target project name.
        repo: Target repository name inside the project.
        repo_branch_or_tag: Repository branch or tag override.
        repo_commit_id: Repository commit override.
        payload: Inline payload path relative to the execution work dir.
        entry_point: Flow entry point name.
        arguments: Process arguments.
        tags: Process tags.
        active_profiles: Active configuration profiles.
        instances: Number of forks to create for this entry.
        sync: Whether the caller waits for completion.
        suspend: Whether a synchronous wait suspends the parent instead of blocking.
        ignore_failures: Whether child failures are logged instead of raised.
        out_vars: Output variable names requested from the child.
        disable_on_cancel: Whether the child skips its cancel handler.
        disable_on_failure: Whether the child skips its failure handler.
        exclusive_exec: Exclusive execution flag, None when not sent.
        start_at: ISO-8601 scheduled start time.
        parent_instance_id: Parent identifier, set only for child launches.
        api_key: API key for starts on an external service instance.
        base_url: Base URL of an external service instance.
    """

    org: str | None = None
    project: str | None = None
    repo: str | None = None
    repo_branch_or_tag: str | None = None
    repo_commit_id: str | None = None
    payload: str | None = None
    entry_point: str | None = None
    arguments: Mapping[str, Any] = field(default_factory=dict)
    tags: frozenset[str] = frozenset()
    active_profiles: frozenset[str] = frozenset()
    instances: int = 1
    sync: bool = False
    suspend: bool = False
    ignore_failures: bool = False
    out_vars: tuple[str, ...] = ()
    disable_on_cancel: bool = False
    disable_on_failure: bool = False
    exclusive_exec: bool | None = None
    start_at: str | None = None
    parent_instance_id: str | None = None
    api_key: str | None = None
    base_url: str | None = None

    def config_wants_output_variables(self) -> bool:
        """Return whether output variables were requested."""

        return bool(self.out_vars)


def job_config_build(
    defaults: Mapping[str, Any] | None,
    params: Mapping[str, Any] | None,
    overrides: Mapping[str, Any] | None = None,
    mode: JobConfigMode = JobConfigMode.START,
    org_default: str | None = None,
) -> JobConfig:
    """Build one validated job configuration from layered inputs.

    Precedence is per-call overrides, then caller parameters, then process
    defaults. Deprecated aliases are translated per layer so a canonical key
    always wins over its alias within the same layer.

    Args:
        defaults: Process-level defaults.
        params: Caller parameter mapping.
        overrides: Per-call overrides such as one `forks` entry.
        mode: Validation mode.
        org_default: Organization of the parent execution.

    Returns:
        JobConfig: Immutable configuration.

    Raises:
        InvalidConfigError: Raised when any value has an unsupported shape or a required value is absent.
    """

    merged: dict[str, Any] = {}
    for layer_name, layer in (("defaults", defaults), ("params", params), ("overrides", overrides)):
        merged.update(_job_config_translate_aliases(layer, layer_name))

    payload = _job_config_optional_text(merged, PAYLOAD_KEY)
    if mode is JobConfigMode.FORK and payload is not None:
        logger.warning("job_config.payload_ignored_for_fork", payload=payload)
        payload = None

    config = JobConfig(
        org=_job_config_optional_text(merged, ORG_KEY) or org_default,
        project=_job_config_optional_text(merged, PROJECT_KEY),
        repo=_job_config_optional_text(merged, REPO_KEY),
        repo_branch_or_tag=_job_config_optional_text(merged, REPO_BRANCH_OR_TAG_KEY),
        repo_commit_id=_job_config_optional_text(merged, REPO_COMMIT_ID_KEY),
        payload=payload,
        entry_point=_job_config_optional_text(merged, ENTRY_POINT_KEY),
        arguments=_job_config_parse_arguments(merged.get(ARGUMENTS_KEY)),
        tags=frozenset(job_config_normalize_string_items(merged.get(TAGS_KEY), TAGS_KEY)),
        active_profiles=frozenset(
            job_config_normalize_string_items(merged.get(ACTIVE_PROFILES_KEY), ACTIVE_PROFILES_KEY)
        ),
        instances=_job_config_parse_instances(merged.get(INSTANCES_KEY)),
        sync=job_config_parse_flag(merged, SYNC_KEY),
        suspend=job_config_parse_flag(merged, SUSPEND_KEY),
        ignore_failures=job_config_parse_flag(merged, IGNORE_FAILURES_KEY),
        out_vars=tuple(dict.fromkeys(job_config_normalize_string_items(merged.get(OUT_VARS_KEY), OUT_VARS_KEY))),
        disable_on_cancel=job_config_parse_flag(merged, DISABLE_ON_CANCEL_KEY),
        disable_on_failure=job_config_parse_flag(merged, DISABLE_ON_FAILURE_KEY),
        exclusive_exec=(
            job_config_parse_flag(merged, EXCLUSIVE_EXEC_KEY) if merged.get(EXCLUSIVE_EXEC_KEY) is not None else None
        ),
        start_at=_job_config_parse_start_at(merged.get(START_AT_KEY)),
        api_key=_job_config_optional_text(merged, API_KEY_KEY),
        base_url=_job_config_optional_text(merged, BASE_URL_KEY),
    )

    if mode is JobConfigMode.START and config.payload is None and config.project is None:
        raise InvalidConfigError(f"'{PAYLOAD_KEY}' and/or '{PROJECT_KEY}' are required")
    if mode is JobConfigMode.FORK and config.entry_point is None:
        raise InvalidConfigError(f"'{ENTRY_POINT_KEY}' is required")
    return config


def job_config_normalize_string_items(value: Any, key: str) -> list[str]:
    """Normalize a comma separated string or a collection of strings.

    Args:
        value: Raw value.
        key: Parameter name used in error messages.

    Returns:
        list[str]: Trimmed non-empty items in input order (sorted for sets).

    Raises:
        InvalidConfigError: Raised when the value is neither a string nor a collection of strings.
    """

    if value is None:
        return []
    if isinstance(value, str):
        raw_items: list[Any] = value.split(",")
    elif isinstance(value, (set, frozenset)):
        raw_items = sorted(value, key=str)
    elif isinstance(value, (list, tuple)):
        raw_items = list(value)
    else:
        raise InvalidConfigError(f"'{key}' must be a single string value or an array of strings: {value!r}")

    items: list[str] = []
    for raw_item in raw_items:
        if not isinstance(raw_item, str):
            raise InvalidConfigError(f"'{key}' items must be strings: {raw_item!r}")
        normalized_item = raw_item.strip()
        if normalized_item:
            items.append(normalized_item)
    return items


def job_config_normalize_instance_ids(value: Any) -> tuple[str, ...]:
    """Normalize a kill target into a non-empty tuple of identifiers.

    Args:
        value: A single str/UUID or a list, tuple or set of them.

    Returns:
        tuple[str, ...]: Identifiers in input order (sorted for sets).

    Raises:
        InvalidConfigError: Raised for other shapes, blank items or an empty collection.
    """

    if isinstance(value, (str, UUID)):
        raw_items: list[Any] = [value]
    elif isinstance(value, (set, frozenset)):
        raw_items = sorted(value, key=str)
    elif isinstance(value, (list, tuple)):
        raw_items = list(value)
    else:
        raise InvalidConfigError(
            f"'{INSTANCE_ID_KEY}' should be a single string, an UUID value or an array of strings or UUIDs: {value!r}"
        )

    instance_ids: list[str] = []
    for raw_item in raw_items:
        if not isinstance(raw_item, (str, UUID)):
            raise InvalidConfigError(f"'{INSTANCE_ID_KEY}' value should be a string or an UUID: {raw_item!r}")
        normalized_item = str(raw_item).strip()
        if not normalized_item:
            raise InvalidConfigError(f"'{INSTANCE_ID_KEY}' values must not be blank")
        instance_ids.append(normalized_item)

    if not instance_ids:
        raise InvalidConfigError(f"'{INSTANCE_ID_KEY}' should be a single value or an array of values: {value!r}")
    return tuple(instance_ids)


def _job_config_translate_aliases(layer: Mapping[str, Any] | None, layer_name: str) -> dict[str, Any]:
    if layer is None:
        return {}
    if not isinstance(layer, Mapping):
        raise InvalidConfigError(f"job {layer_name} must be a mapping, got {type(layer).__name__}")

    translated = dict(layer)
    for alias_key, canonical_key in _DEPRECATED_ALIASES:
        if alias_key not in translated:
            continue
        alias_value = translated.pop(alias_key)
        logger.warning("job_config.deprecated_key", key=alias_key, replacement=canonical_key, layer=layer_name)
        if translated.get(canonical_key) is None:
            translated[canonical_key] = alias_value
    return translated


def _job_config_optional_text(values: Mapping[str, Any], key: str) -> str | None:
    value = values.get(key)
    if value is None:
        return None
    if isinstance(value, UUID):
        return str(value)
    if not isinstance(value, str):
        raise InvalidConfigError(f"'{key}' must be a string: {value!r}")
    return value.strip() or None


def job_config_parse_flag(values: Mapping[str, Any], key: str) -> bool:
    """Parse a boolean flag accepting booleans and `true`/`false` strings.

    Args:
        values: Parameter mapping.
        key: Flag key; absent or None means False.

    Returns:
        bool: Parsed flag.

    Raises:
        InvalidConfigError: Raised for any other value shape.
    """

    value = values.get(key)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise InvalidConfigError(f"'{key}' must be a boolean: {value!r}")


def _job_config_parse_arguments(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidConfigError(f"'{ARGUMENTS_KEY}' must be a mapping: {value!r}")
    return dict(value)


def _job_config_parse_instances(value: Any) -> int:
    """Parse the fork instance count.

    Args:
        value: Raw `instances` value, None means one instance.

    Returns:
        int: Instance count >= 1.

    Raises:
        InvalidConfigError: Raised for booleans, non-numeric values and counts below one.
    """

    if value is None:
        return 1
    if isinstance(value, bool):
        raise InvalidConfigError(f"'{INSTANCES_KEY}' must be a number: {value!r}")
    if isinstance(value, int):
        instances = value
    elif isinstance(value, str):
        try:
            instances = int(value.strip())
        except ValueError as error:
            raise InvalidConfigError(f"'{INSTANCES_KEY}' must be a number: {value!r}") from error
    else:
        raise InvalidConfigError(f"'{INSTANCES_KEY}' must be a number: {value!r}")

    if instances < 1:
        raise InvalidConfigError(f"'{INSTANCES_KEY}' must be a positive number: {instances}")
    return instances


def _job_config_parse_start_at(value: Any) -> str | None:
    """Render the scheduled start time as ISO-8601.

    Naive datetimes are interpreted as UTC.
    """

    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    raise InvalidConfigError(f"'{START_AT_KEY}' must be a string or a date: {value!r}")
