"""Database engine utilities.

This module centralizes database connectivity primitives to enforce the db-layer
boundary for all SQLAlchemy usage.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from .schema import EXECUTION_STATE_METADATA


def db_create_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine for execution state access.

    In-memory SQLite URLs share one connection across threads so embedded
    hosts and tests observe a single database.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        Engine: Configured SQLAlchemy engine.

    Raises:
        ValueError: Raised when the database URL is blank.
    """

    normalized_database_url = database_url.strip()
    if not normalized_database_url:
        raise ValueError("database_url must not be blank")

    if normalized_database_url.startswith("sqlite") and (
        ":memory:" in normalized_database_url or normalized_database_url in {"sqlite://", "sqlite+pysqlite://"}
    ):
        return create_engine(
            normalized_database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(normalized_database_url, pool_pre_ping=True)


def db_create_execution_state_schema(engine: Engine) -> None:
    """Create the execution variable table when it does not exist.

    Production databases are migrated with Alembic; this helper serves
    in-memory databases that never see a migration run.

    Args:
        engine: SQLAlchemy engine instance.

    Returns:
        None: Schema is created as a side effect.

    Raises:
        ValueError: Raised when engine is invalid.
    """

    if engine is None:
        raise ValueError("engine must not be None")

    EXECUTION_STATE_METADATA.create_all(engine)
