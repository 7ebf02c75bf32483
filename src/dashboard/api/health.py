"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get(
    "/health",
    summary="Health check",
    description="Liveness probe; does not touch any upstream.",
)
async def health(request: Request):
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check the report manager is wired and has modules registered.",
)
async def ready(request: Request):
    """Readiness check.

    Availability probes are not run here; they reach upstreams and belong to
    /api/reports/list.
    """
    manager = getattr(request.app.state, "report_manager", None)
    registered = manager.list() if manager is not None else []
    checks = {
        "report_manager": manager is not None,
        "reports_registered": bool(registered),
    }

    return {
        "status": "ready" if all(checks.values()) else "not_ready",
        "checks": checks,
        "reports": [metadata.id for metadata in registered],
    }
