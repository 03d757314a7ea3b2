"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from perfect_names import __version__
from perfect_names.api.dependencies import get_resolution_context
from perfect_names.services.resolver import ResolutionContext

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "perfect-names-api",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check(context: ResolutionContext = Depends(get_resolution_context)):
    """Readiness check: degraded while a provider is unconfigured or failing."""
    checks = {}

    for name in context.breakers.names():
        checks[name] = "ok" if context.breakers[name].is_available() else "circuit_open"

    if context.settings.base_names_enabled and not context.settings.is_basename_configured:
        checks["basename"] = "not_configured"

    if not context.settings.name_resolution_enabled:
        checks["name_resolution"] = "disabled"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "degraded",
        "checks": checks,
    }


@router.get("/health/live")
async def liveness_check():
    """Liveness check - always returns ok if the server is running."""
    return {"status": "alive"}
