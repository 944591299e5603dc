# club_dispatch/routes/health.py
"""
Health check endpoints with database pool monitoring.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from club_dispatch.config import settings
from club_dispatch.db.pool import db_health_check
from club_dispatch.infrastructure.observability.logging import log_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "club-session-dispatch"}


@router.get("/readyz")
async def readyz():
    """Readiness: database pool and required configuration."""
    checks = {}

    t0 = time.time()
    db_health = await db_health_check()
    latency_ms = round((time.time() - t0) * 1000, 1)
    db_ok = bool(db_health.get("healthy", False))

    checks["database"] = {"ok": db_ok, "latency_ms": latency_ms}
    if "pool_stats" in db_health:
        checks["database"].update(db_health["pool_stats"])
    if "warnings" in db_health:
        checks["database"]["warnings"] = db_health["warnings"]
    if not db_ok:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")
    log_health_check("database", db_ok, latency_ms, checks["database"].get("error"))

    config_issues = []
    if settings.DEFAULT_MEETING_PLATFORM == "google-meet" and not settings.GOOGLE_REFRESH_TOKEN:
        config_issues.append("GOOGLE_REFRESH_TOKEN not set")
    if settings.DEFAULT_MEETING_PLATFORM == "zoom" and not settings.ZOOM_ACCOUNT_ID:
        config_issues.append("ZOOM_ACCOUNT_ID not set")
    if not settings.ADMIN_JWT_SECRET:
        config_issues.append("ADMIN_JWT_SECRET not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }

    overall_ok = db_ok and not config_issues
    body = {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
    return JSONResponse(status_code=200 if overall_ok else 503, content=body)


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
