import pytest

from club_dispatch.auth.verify import admin_dependency
from club_dispatch.config import settings
from tests.fakes import FakeLinkService, FakeMeetingRepository, FakeSubscriptionRepository


@pytest.fixture
def subscription_repo():
    return FakeSubscriptionRepository()


@pytest.fixture
def meeting_repo():
    return FakeMeetingRepository()


@pytest.fixture
def link_service():
    return FakeLinkService()


@pytest.fixture
def admin_secret(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_JWT_SECRET", "test-admin-secret")
    return "test-admin-secret"


@pytest.fixture
def admin_override():
    def _override():
        return {"sub": "ops-admin", "role": "admin"}

    return _override


@pytest.fixture
def apply_admin_override(admin_override):
    applied = []

    def _apply(app):
        app.dependency_overrides[admin_dependency] = admin_override
        applied.append(app)

    yield _apply
    for app in applied:
        app.dependency_overrides.pop(admin_dependency, None)
