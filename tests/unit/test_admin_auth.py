from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from club_dispatch.auth.verify import ALGORITHM, issue_admin_token, verify_admin_token
from club_dispatch.config import settings
from club_dispatch.main import app

client = TestClient(app)


def _token(secret: str, **claims) -> str:
    payload = {"sub": "ops", "exp": datetime.now(UTC) + timedelta(minutes=5), **claims}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def test_issued_token_verifies(admin_secret):
    claims = verify_admin_token(issue_admin_token("ops@example.com"))

    assert claims["sub"] == "ops@example.com"
    assert claims["role"] == "admin"


def test_wrong_role_is_forbidden(admin_secret):
    with pytest.raises(HTTPException) as exc:
        verify_admin_token(_token(admin_secret, role="member"))

    assert exc.value.status_code == 403


def test_expired_token_is_rejected(admin_secret):
    token = _token(admin_secret, role="admin", exp=datetime.now(UTC) - timedelta(minutes=1))

    with pytest.raises(HTTPException) as exc:
        verify_admin_token(token)

    assert exc.value.status_code == 401


def test_token_without_exp_is_rejected(admin_secret):
    token = jwt.encode({"sub": "ops", "role": "admin"}, admin_secret, algorithm=ALGORITHM)

    with pytest.raises(HTTPException) as exc:
        verify_admin_token(token)

    assert exc.value.status_code == 401


def test_foreign_signature_is_rejected(admin_secret):
    with pytest.raises(HTTPException) as exc:
        verify_admin_token(_token("some-other-secret", role="admin"))

    assert exc.value.status_code == 401


def test_missing_secret_is_service_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_JWT_SECRET", None)

    with pytest.raises(HTTPException) as exc:
        verify_admin_token("anything")

    assert exc.value.status_code == 503


def test_admin_endpoint_requires_bearer_token(admin_secret):
    response = client.get("/admin/dispatch/status")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_admin_endpoint_rejects_member_token(admin_secret):
    response = client.post(
        "/admin/dispatch/run",
        headers={"Authorization": f"Bearer {_token(admin_secret, role='member')}"},
    )

    assert response.status_code == 403
