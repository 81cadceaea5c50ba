"""Service test fixtures - file-backed SQLite database + full ASGI pipeline client.

Invariants:
    - Every test gets a fresh SQLite database with the session table created
    - The app under test is built by create_app with the test schema injected,
      so every middleware runs exactly as in production
    - The rate limiter reads a controllable clock

Design Decisions:
    - httpx ASGITransport does not run the lifespan: tables are created here,
      and the lifecycle stays UNSTARTED unless a test drives it
    - File-backed SQLite (tmp_path): every engine connection sees the same data
"""

import json

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from plataforma.config import Settings
from plataforma.infrastructure.database import SchemaManager
from plataforma.main import create_app
from plataforma.models.session import SessionRecord
from plataforma.services.rate_limiter import RateLimiter
from plataforma.services.session_store import SessionStore

BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/120.0"


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return Settings(
        session_secret="test-session-secret-0123456789",
        postgres_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        frontend_url="http://localhost:5173",
        node_env="test",
    )


@pytest.fixture
async def schema(settings):
    manager = SchemaManager(settings.database_url)
    assert await manager.ensure_tables_exist()
    yield manager
    await manager.close()


@pytest.fixture
def session_store(schema, settings):
    return SessionStore(schema, ttl_seconds=settings.session_ttl_seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(settings, clock):
    return RateLimiter(
        limit=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        clock=clock,
    )


@pytest.fixture
def build_app(settings, schema, rate_limiter):
    """Factory: create_app with the test schema and limiter, overridable per test."""
    def build(app_settings=None, **overrides):
        kwargs = {"schema": schema, "rate_limiter": rate_limiter}
        kwargs.update(overrides)
        return create_app(app_settings or settings, **kwargs)
    return build


@pytest.fixture
def app(build_app):
    return build_app()


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"user-agent": BROWSER_UA},
    ) as c:
        yield c


@pytest.fixture
def decrypt(app):
    """Open an encrypted response body with the app's own cipher."""
    def _decrypt(response):
        return json.loads(app.state.cipher.open_envelope(response.content))
    return _decrypt


@pytest.fixture
def count_sessions(schema):
    async def _count() -> int:
        async with schema.session() as db:
            result = await db.execute(
                select(func.count()).select_from(SessionRecord),
            )
            return result.scalar_one()
    return _count
