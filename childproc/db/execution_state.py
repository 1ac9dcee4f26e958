"""Execution variable state services backed by SQLAlchemy or process memory."""

from __future__ import annotations

import copy
import json
import threading
from typing import Any

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import ExecutionStatePort


class SQLAlchemyExecutionStateService(ExecutionStatePort):
    """SQLAlchemy-backed execution variable state.

    Rows live in the `execution_variable` table keyed by parent instance id
    and variable name, with values stored as JSON text.
    """

    def __init__(self, engine: Engine):
        """Initialize execution state persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def state_get(self, instance_id: str, name: str, default: Any = None) -> Any:
        """Read one variable value.

        Args:
            instance_id: Parent execution identifier.
            name: Variable name.
            default: Value returned when the variable is absent.

        Returns:
            Any: Decoded value or `default`.

        Raises:
            ValueError: Raised when inputs are blank.
            RuntimeError: Raised when the read fails.
        """

        normalized_instance_id = self._validate_non_empty_text(instance_id, "instance_id")
        normalized_name = self._validate_non_empty_text(name, "name")

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(
                        "SELECT variable_value FROM execution_variable "
                        "WHERE instance_id = :instance_id AND variable_name = :variable_name"
                    ),
                    {"instance_id": normalized_instance_id, "variable_name": normalized_name},
                ).first()
        except SQLAlchemyError as error:
            raise RuntimeError("failed to read execution variable") from error

        if row is None:
            return default
        return json.loads(row[0])

    def state_set(self, instance_id: str, name: str, value: Any) -> None:
        """Replace one variable value inside a single transaction.

        Args:
            instance_id: Parent execution identifier.
            name: Variable name.
            value: JSON-compatible value.

        Returns:
            None: Value is persisted as a side effect.

        Raises:
            ValueError: Raised when inputs are blank or value is not JSON-compatible.
            RuntimeError: Raised when the write fails.
        """

        normalized_instance_id = self._validate_non_empty_text(instance_id, "instance_id")
        normalized_name = self._validate_non_empty_text(name, "name")
        try:
            encoded_value = json.dumps(value, sort_keys=True)
        except TypeError as error:
            raise ValueError(f"execution variable {normalized_name} is not JSON-compatible") from error

        parameters = {
            "instance_id": normalized_instance_id,
            "variable_name": normalized_name,
            "variable_value": encoded_value,
        }
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        "DELETE FROM execution_variable "
                        "WHERE instance_id = :instance_id AND variable_name = :variable_name"
                    ),
                    parameters,
                )
                connection.execute(
                    text(
                        "INSERT INTO execution_variable (instance_id, variable_name, variable_value, updated_at_utc) "
                        "VALUES (:instance_id, :variable_name, :variable_value, CURRENT_TIMESTAMP)"
                    ),
                    parameters,
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to write execution variable") from error

    def state_remove(self, instance_id: str, name: str) -> bool:
        """Delete one variable row.

        Args:
            instance_id: Parent execution identifier.
            name: Variable name.

        Returns:
            bool: True when a row was deleted.

        Raises:
            ValueError: Raised when inputs are blank.
            RuntimeError: Raised when the delete fails.
        """

        normalized_instance_id = self._validate_non_empty_text(instance_id, "instance_id")
        normalized_name = self._validate_non_empty_text(name, "name")

        try:
            with self._engine.begin() as connection:
                result = connection.execute(
                    text(
                        "DELETE FROM execution_variable "
                        "WHERE instance_id = :instance_id AND variable_name = :variable_name"
                    ),
                    {"instance_id": normalized_instance_id, "variable_name": normalized_name},
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to remove execution variable") from error
        return bool(result.rowcount)

    @staticmethod
    def _validate_non_empty_text(value: str, field_name: str) -> str:
        normalized_value = str(value).strip()
        if not normalized_value:
            raise ValueError(f"{field_name} must not be blank")
        return normalized_value


class InMemoryExecutionStateService(ExecutionStatePort):
    """Process-local execution variable state for embedded hosts and tests."""

    def __init__(self) -> None:
        self._variables: dict[tuple[str, str], Any] = {}
        self._lock = threading.Lock()

    def state_get(self, instance_id: str, name: str, default: Any = None) -> Any:
        with self._lock:
            if (instance_id, name) not in self._variables:
                return default
            return copy.deepcopy(self._variables[(instance_id, name)])

    def state_set(self, instance_id: str, name: str, value: Any) -> None:
        with self._lock:
            self._variables[(instance_id, name)] = copy.deepcopy(value)

    def state_remove(self, instance_id: str, name: str) -> bool:
        with self._lock:
            return self._variables.pop((instance_id, name), None) is not None
