"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from club_dispatch.main import app

client = TestClient(app)

HEALTHY_DB = {
    "healthy": True,
    "latency_ms": 1.2,
    "pool_stats": {"pool_size": 2, "pool_available": 2},
}


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "club-session-dispatch"


def test_readyz_endpoint_all_checks_pass():
    """Test readiness endpoint when database and configuration are fine."""
    with (
        patch("club_dispatch.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("club_dispatch.routes.health.settings.DEFAULT_MEETING_PLATFORM", "google-meet"),
        patch("club_dispatch.routes.health.settings.GOOGLE_REFRESH_TOKEN", "refresh"),
        patch("club_dispatch.routes.health.settings.ADMIN_JWT_SECRET", "secret"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["database"]["ok"] is True
    assert data["checks"]["database"]["pool_size"] == 2
    assert isinstance(data["checks"]["database"]["latency_ms"], (int, float))
    assert data["checks"]["configuration"]["ok"] is True


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when the pool cannot serve queries."""
    unhealthy = {"healthy": False, "error": "Connection failed"}
    with (
        patch("club_dispatch.routes.health.db_health_check", AsyncMock(return_value=unhealthy)),
        patch("club_dispatch.routes.health.settings.GOOGLE_REFRESH_TOKEN", "refresh"),
        patch("club_dispatch.routes.health.settings.ADMIN_JWT_SECRET", "secret"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 503
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"


def test_readyz_endpoint_missing_configuration():
    """Test readiness endpoint when required secrets are missing."""
    with (
        patch("club_dispatch.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("club_dispatch.routes.health.settings.DEFAULT_MEETING_PLATFORM", "zoom"),
        patch("club_dispatch.routes.health.settings.ZOOM_ACCOUNT_ID", None),
        patch("club_dispatch.routes.health.settings.ADMIN_JWT_SECRET", None),
    ):
        response = client.get("/readyz")

    assert response.status_code == 503
    issues = response.json()["checks"]["configuration"]["issues"]
    assert "ZOOM_ACCOUNT_ID not set" in issues
    assert "ADMIN_JWT_SECRET not set" in issues
