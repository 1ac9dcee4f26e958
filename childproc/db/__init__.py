"""Database layer package for all SQL and persistence boundaries."""

from .execution_state import InMemoryExecutionStateService, SQLAlchemyExecutionStateService
from .health import SQLAlchemyDatabaseHealthService
from .interfaces import DatabaseHealthPort, ExecutionStatePort
from .schema import EXECUTION_STATE_METADATA, EXECUTION_VARIABLE_TABLE
from .session import db_create_engine, db_create_execution_state_schema

__all__ = [
	"EXECUTION_STATE_METADATA",
	"EXECUTION_VARIABLE_TABLE",
	"DatabaseHealthPort",
	"ExecutionStatePort",
	"InMemoryExecutionStateService",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyExecutionStateService",
	"db_create_engine",
	"db_create_execution_state_schema",
]
