import pytest

from club_dispatch.jobs import worker


@pytest.fixture
def pool_calls(monkeypatch):
    calls = []

    async def initialize():
        calls.append("initialize")

    async def close():
        calls.append("close")

    async def close_transport():
        calls.append("close_transport")

    monkeypatch.setattr(worker.db_pool, "initialize", initialize)
    monkeypatch.setattr(worker.db_pool, "close", close)
    monkeypatch.setattr(worker.daily_dispatch_job, "close", close_transport)
    return calls


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch, pool_calls):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True
    assert pool_calls == ["initialize", "close_transport", "close"]


@pytest.mark.asyncio
async def test_run_worker_closes_pool_on_failure(monkeypatch, pool_calls):
    async def failing_job():
        raise RuntimeError("job crashed")

    monkeypatch.setitem(worker.JOB_REGISTRY, "failing", failing_job)

    with pytest.raises(RuntimeError):
        await worker.run_worker("failing")

    assert pool_calls == ["initialize", "close_transport", "close"]


@pytest.mark.asyncio
async def test_run_worker_unknown_job(pool_calls):
    with pytest.raises(ValueError):
        await worker.run_worker("missing")

    assert pool_calls == []


def test_registry_exposes_dispatch_jobs():
    assert set(worker.JOB_REGISTRY) == {"daily_dispatch", "daily_dispatch_once"}
