"""
Health check endpoints.

Provides liveness and readiness probes for monitoring.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from chatrelay import __version__
from chatrelay.api.deps import get_container
from chatrelay.container import Container
from chatrelay.db import verify_database_connection

router = APIRouter(tags=["health"])


@router.get("/health")
@router.get("/healthz")
async def healthcheck(container: Container = Depends(get_container)) -> dict[str, Any]:
    """Liveness probe."""
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": container.settings.environment,
    }


@router.get("/readyz")
def readiness(container: Container = Depends(get_container)) -> JSONResponse:
    """
    Readiness probe.

    Ready when the database answers (if one is configured) and at least one
    provider has credentials.
    """
    available = container.provider_service.get_available_providers()
    checks: dict[str, bool] = {
        "database": container.engine is None or verify_database_connection(container.engine),
        "providers": bool(available),
    }
    all_ready = all(checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_ready else "not_ready",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
            "available_providers": available,
        },
    )
