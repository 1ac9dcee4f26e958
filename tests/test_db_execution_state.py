"""Tests for execution variable state services."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine

from childproc.db import (
    InMemoryExecutionStateService,
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyExecutionStateService,
    db_create_engine,
    db_create_execution_state_schema,
)


@pytest.fixture
def engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine with the state schema."""

    sqlite_engine = db_create_engine("sqlite://")
    db_create_execution_state_schema(sqlite_engine)
    yield sqlite_engine
    sqlite_engine.dispose()


@pytest.fixture(params=["sqlalchemy", "memory"])
def state_service(request: pytest.FixtureRequest, engine: Engine):
    """Provide each execution state implementation."""

    if request.param == "sqlalchemy":
        return SQLAlchemyExecutionStateService(engine)
    return InMemoryExecutionStateService()


def test_db_state_set_get_and_replace(state_service) -> None:
    """Persist, read back and replace one variable value.

    Args:
        state_service: Execution state implementation under test.

    Returns:
        None: Assertions validate stored values.

    Raises:
        AssertionError: Raised when stored values differ.
    """

    assert state_service.state_get("parent-1", "jobs") is None
    assert state_service.state_get("parent-1", "jobs", default=[]) == []

    state_service.state_set("parent-1", "jobs", ["child-1"])
    state_service.state_set("parent-1", "jobs", ["child-1", "child-2"])
    state_service.state_set("parent-2", "jobs", ["other"])

    assert state_service.state_get("parent-1", "jobs") == ["child-1", "child-2"]
    assert state_service.state_get("parent-2", "jobs") == ["other"]


def test_db_state_remove_reports_whether_a_row_existed(state_service) -> None:
    state_service.state_set("parent-1", "__childProcessSuspend", {"waitSet": ["child-1"], "pending": True})

    assert state_service.state_remove("parent-1", "__childProcessSuspend") is True
    assert state_service.state_remove("parent-1", "__childProcessSuspend") is False
    assert state_service.state_get("parent-1", "__childProcessSuspend") is None


def test_db_state_values_are_copied(state_service) -> None:
    value = {"result": [1, 2]}
    state_service.state_set("parent-1", "jobOut", value)
    value["result"].append(3)

    stored_value = state_service.state_get("parent-1", "jobOut")
    stored_value["result"].append(4)

    assert state_service.state_get("parent-1", "jobOut") == {"result": [1, 2]}


def test_db_sqlalchemy_state_rejects_invalid_input(engine: Engine) -> None:
    state_service = SQLAlchemyExecutionStateService(engine)

    with pytest.raises(ValueError, match="instance_id must not be blank"):
        state_service.state_get(" ", "jobs")
    with pytest.raises(ValueError, match="not JSON-compatible"):
        state_service.state_set("parent-1", "jobs", object())


def test_db_sqlalchemy_state_wraps_database_errors() -> None:
    sqlite_engine = db_create_engine("sqlite://")
    try:
        with pytest.raises(RuntimeError, match="failed to read execution variable"):
            SQLAlchemyExecutionStateService(sqlite_engine).state_get("parent-1", "jobs")
    finally:
        sqlite_engine.dispose()


def test_db_health_reports_missing_state_table_as_degraded() -> None:
    sqlite_engine = db_create_engine("sqlite://")
    try:
        health_service = SQLAlchemyDatabaseHealthService(sqlite_engine)
        assert health_service.db_check_health().status == "degraded"

        db_create_execution_state_schema(sqlite_engine)
        assert health_service.db_check_health().status == "ok"
        assert health_service.db_connection_label() == "sqlite://"
    finally:
        sqlite_engine.dispose()


def test_db_create_engine_rejects_blank_url() -> None:
    with pytest.raises(ValueError, match="database_url must not be blank"):
        db_create_engine("  ")
