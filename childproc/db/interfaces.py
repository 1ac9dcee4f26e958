"""Typed interfaces for database-layer services.

All SQL and ORM access must remain in the db package and its submodules.
"""

from typing import Any, Protocol

from childproc.domain import HealthStatus


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


class ExecutionStatePort(Protocol):
    """Port definition for the parent execution's persisted variable state.

    Values are JSON-compatible. The orchestrator reads and writes this state
    from one logical action at a time.
    """

    def state_get(self, instance_id: str, name: str, default: Any = None) -> Any:
        """Return one variable value.

        Args:
            instance_id: Parent execution identifier.
            name: Variable name.
            default: Value returned when the variable is absent.

        Returns:
            Any: Stored value or `default`.

        Raises:
            RuntimeError: Raised when the state cannot be read.
        """

    def state_set(self, instance_id: str, name: str, value: Any) -> None:
        """Create or replace one variable value.

        Args:
            instance_id: Parent execution identifier.
            name: Variable name.
            value: JSON-compatible value.

        Returns:
            None: Value is stored as a side effect.

        Raises:
            RuntimeError: Raised when the state cannot be written.
        """

    def state_remove(self, instance_id: str, name: str) -> bool:
        """Remove one variable.

        Args:
            instance_id: Parent execution identifier.
            name: Variable name.

        Returns:
            bool: True when a variable was removed.

        Raises:
            RuntimeError: Raised when the state cannot be written.
        """
