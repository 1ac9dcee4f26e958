"""Database health service implementations for connectivity checks."""

from sqlalchemy import Engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError

from childproc.domain import HealthStatus

from .interfaces import DatabaseHealthPort
from .schema import EXECUTION_VARIABLE_TABLE


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service that checks connectivity and the execution state table."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with the password hidden."""

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Verify connectivity and report whether execution state storage is migrated.

        Returns:
            HealthStatus: `ok` when the execution state table exists, `degraded` otherwise.

        Raises:
            ConnectionError: Raised when connectivity check fails.
        """

        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                has_state_table = inspect(connection).has_table(EXECUTION_VARIABLE_TABLE.name)
        except SQLAlchemyError as error:
            raise ConnectionError("database connectivity check failed") from error

        if not has_state_table:
            return HealthStatus(
                status="degraded",
                detail=f"database reachable but table {EXECUTION_VARIABLE_TABLE.name} is missing",
            )
        return HealthStatus(status="ok", detail="database connectivity and execution state table verified")
