"""Application bootstrap wiring for startup validation and dependency assembly."""

from pathlib import Path

from fastapi import FastAPI
from sqlalchemy import Engine

from childproc.adapters import HttpProcessServiceAdapter
from childproc.api import create_api_application
from childproc.config import AppSettings, config_configure_logging, config_load_job_defaults, config_load_settings
from childproc.db import SQLAlchemyDatabaseHealthService, SQLAlchemyExecutionStateService, db_create_engine
from childproc.jobs import ChildProcessOrchestrator, FixedRetryPolicy, InMemoryHostScheduler, ProcessServiceFactory


def bootstrap_create_service_factory(settings: AppSettings) -> ProcessServiceFactory:
    """Build the factory used for starts on external service instances.

    Args:
        settings: Validated application settings.

    Returns:
        ProcessServiceFactory: Factory building an HTTP adapter for `(base_url, api_key)`.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    def _bootstrap_build_service(base_url: str | None, api_key: str) -> HttpProcessServiceAdapter:
        return HttpProcessServiceAdapter(
            base_url=base_url or settings.process_service_base_url,
            api_key=api_key,
            request_timeout_seconds=settings.process_service_request_timeout_seconds,
        )

    return _bootstrap_build_service


def bootstrap_create_orchestrator(
    settings: AppSettings,
    engine: Engine,
    defaults_path: Path | None = None,
) -> ChildProcessOrchestrator:
    """Build the child process orchestrator backed by durable execution state.

    Args:
        settings: Validated application settings.
        engine: SQLAlchemy engine for execution variable state.
        defaults_path: Optional job defaults file overriding `settings.job_defaults_path`.

    Returns:
        ChildProcessOrchestrator: Fully wired orchestrator instance.

    Raises:
        SettingsLoadError: Raised when the job defaults file is invalid.
    """

    process_service = HttpProcessServiceAdapter(
        base_url=settings.process_service_base_url,
        api_key=settings.process_service_api_key,
        request_timeout_seconds=settings.process_service_request_timeout_seconds,
    )
    return ChildProcessOrchestrator(
        process_service=process_service,
        execution_state=SQLAlchemyExecutionStateService(engine=engine),
        host_scheduler=InMemoryHostScheduler(),
        job_defaults=config_load_job_defaults(defaults_path or settings.job_defaults_path),
        retry_policy=FixedRetryPolicy(
            attempts=settings.status_retry_attempts,
            delay_seconds=settings.status_retry_delay_seconds,
        ),
        poll_interval_seconds=settings.poll_interval_seconds,
        kill_wait_timeout_seconds=settings.kill_wait_timeout_seconds,
        resume_event_name=settings.resume_event_name,
        service_factory=bootstrap_create_service_factory(settings),
    )


def bootstrap_create_application() -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    config_configure_logging(level=settings.log_level, log_format=settings.log_format)
    engine = db_create_engine(database_url=settings.database_url)
    return create_api_application(
        settings=settings,
        db_health_service=SQLAlchemyDatabaseHealthService(engine=engine),
        orchestrator=bootstrap_create_orchestrator(settings=settings, engine=engine),
    )


def bootstrap_create_cli_orchestrator(defaults_path: Path | None = None) -> ChildProcessOrchestrator:
    """Build the orchestrator for non-HTTP trigger surfaces.

    Args:
        defaults_path: Optional job defaults file.

    Returns:
        ChildProcessOrchestrator: Fully wired orchestrator instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    config_configure_logging(level=settings.log_level, log_format=settings.log_format)
    engine = db_create_engine(database_url=settings.database_url)
    return bootstrap_create_orchestrator(settings=settings, engine=engine, defaults_path=defaults_path)
