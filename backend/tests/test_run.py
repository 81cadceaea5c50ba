"""Process Entry - serve() against an occupied port.

Invariants:
    - A listener that cannot bind returns exit code 1
    - The lifecycle ends FAILED and its resources are released
"""

import asyncio
import socket

import pytest

from plataforma.config import Settings
from plataforma.core.startup_state import StartupState
from plataforma.infrastructure.connection_pool import ConnectionResource
from plataforma.infrastructure.database import SchemaManager
from plataforma.main import create_app
from plataforma.run import serve


class _IdlePool:
    async def acquire(self, timeout=None):
        return object()

    async def release(self, conn):
        pass

    async def close(self):
        pass

    def terminate(self):
        pass


@pytest.fixture
def occupied_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


async def test_bind_failure_exits_one_and_marks_failed(tmp_path, occupied_port):
    async def factory(**options):
        return _IdlePool()

    settings = Settings(
        session_secret="test-session-secret-0123456789",
        postgres_url=f"sqlite+aiosqlite:///{tmp_path}/run.db",
        host="127.0.0.1",
        port=occupied_port,
        shutdown_grace_seconds=1,
    )
    app = create_app(
        settings,
        schema=SchemaManager(settings.database_url),
        pool=ConnectionResource("postgresql://test", pool_factory=factory),
    )

    exit_code = await asyncio.wait_for(serve(app), timeout=10)

    assert exit_code == 1
    assert app.state.lifecycle.state is StartupState.FAILED
    assert app.state.schema.closed
