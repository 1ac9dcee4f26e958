"""Health endpoint router composition for app and database checks."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from childproc.db import DatabaseHealthPort


def api_create_health_router(db_health_service: DatabaseHealthPort, process_service_label: str) -> APIRouter:
    """Create health-check router with app, database and remote target status.

    Args:
        db_health_service: DB-layer health service interface.
        process_service_label: Remote process service target shown for diagnostics.

    Returns:
        APIRouter: Router exposing `/health` endpoint.

    Raises:
        ValueError: Raised when db_health_service is invalid.
    """

    if db_health_service is None:
        raise ValueError("db_health_service must not be None")

    router = APIRouter(tags=["health"])

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        """Return application and execution state storage health.

        A reachable database without the execution state table reports
        `degraded` with HTTP 503, the same as an unreachable one.

        Returns:
            JSONResponse: Deterministic health payload for operational checks.

        Raises:
            RuntimeError: This handler converts connectivity failures into payloads.
        """

        try:
            db_health = db_health_service.db_check_health()
        except ConnectionError as error:
            payload = {
                "status": "degraded",
                "app": "up",
                "database": "down",
                "detail": str(error),
                "target": db_health_service.db_connection_label(),
                "process_service": process_service_label,
            }
            return JSONResponse(content=payload, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

        is_ok = db_health.status == "ok"
        payload = {
            "status": "ok" if is_ok else "degraded",
            "app": "up",
            "database": db_health.status,
            "detail": db_health.detail,
            "target": db_health_service.db_connection_label(),
            "process_service": process_service_label,
        }
        return JSONResponse(
            content=payload,
            status_code=status.HTTP_200_OK if is_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return router
