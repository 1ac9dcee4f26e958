"""FastAPI application factory for the child process orchestrator service."""

from pathlib import Path

from fastapi import FastAPI

from childproc.config import AppSettings
from childproc.db import DatabaseHealthPort
from childproc.jobs import ChildProcessOrchestrator

from .routers import api_create_executions_router, api_create_health_router


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    orchestrator: ChildProcessOrchestrator,
    default_work_dir: Path | None = None,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        orchestrator: Child process orchestrator used by execution endpoints.
        default_work_dir: Work directory for requests that do not name one.

    Returns:
        FastAPI: Framework application instance.

    Raises:
        RuntimeError: Raised if application initialization fails.
    """
    application = FastAPI(title="childproc")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return service metadata for bootstrap verification."""

        return {
            "service": "childproc",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(
        api_create_health_router(
            db_health_service=db_health_service,
            process_service_label=settings.process_service_base_url,
        )
    )
    application.include_router(
        api_create_executions_router(
            orchestrator=orchestrator,
            default_work_dir=default_work_dir or Path.cwd(),
        )
    )

    return application
