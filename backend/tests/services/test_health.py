"""Health & Readiness Probes - liveness payload and lifecycle-driven readiness."""

from datetime import datetime

from httpx import ASGITransport, AsyncClient

from plataforma.config import APP_VERSION
from plataforma.infrastructure.connection_pool import ConnectionResource


class _IdlePool:
    async def acquire(self, timeout=None):
        return object()

    async def release(self, conn):
        pass

    async def close(self):
        pass

    def terminate(self):
        pass


def _fake_resource():
    async def factory(**options):
        return _IdlePool()
    return ConnectionResource("postgresql://test", pool_factory=factory)


async def test_health_returns_ok_with_iso_timestamp(client):
    res = await client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "OK"
    assert body["version"] == APP_VERSION
    assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None


async def test_health_reports_startup_state(client):
    res = await client.get("/health")
    assert res.json()["startup"] == "unstarted"


async def test_ready_is_503_before_startup(client):
    res = await client.get("/health/ready")
    assert res.status_code == 503
    body = res.json()
    assert body["status"] == "not_ready"
    assert body["reason"] == "startup_not_ready"


async def test_ready_after_clean_startup(build_app):
    app = build_app(pool=_fake_resource())
    lifecycle = app.state.lifecycle
    await lifecycle.startup()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            health = await c.get("/health")
            ready = await c.get("/health/ready")
        assert health.json()["startup"] == "ready"
        assert ready.status_code == 200
        assert ready.json()["status"] == "ready"
    finally:
        await lifecycle.shutdown()


async def test_degraded_startup_still_serves(build_app):
    async def refusing_factory(**options):
        raise ConnectionRefusedError("no database")

    pool = ConnectionResource("postgresql://test", pool_factory=refusing_factory)
    app = build_app(pool=pool)
    lifecycle = app.state.lifecycle
    await lifecycle.startup()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            health = await c.get("/health")
            ready = await c.get("/health/ready")
        assert health.status_code == 200
        assert health.json()["startup"] == "degraded"
        assert ready.status_code == 503
        assert ready.json()["failed_steps"] == ["pool_probe"]
    finally:
        await lifecycle.shutdown()
