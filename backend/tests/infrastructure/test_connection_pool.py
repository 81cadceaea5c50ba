"""Connection Resource - tests against a fake asyncpg pool.

Tests cover:
    - Pool options handed to the factory (min 0, idle and connect timeouts)
    - acquire() error mapping (timeout -> PoolExhaustedError, socket -> DatabaseError)
    - probe() never raises
    - drain_and_close() idempotence and terminate-on-timeout
"""

import asyncio

import pytest

from plataforma.core.errors import DatabaseError, PoolExhaustedError
from plataforma.infrastructure.connection_pool import ConnectionResource


class FakePool:
    def __init__(self, acquire_error=None, hang_on_close=False):
        self.acquire_error = acquire_error
        self.hang_on_close = hang_on_close
        self.leased = 0
        self.released = []
        self.close_calls = 0
        self.terminated = False

    async def acquire(self, timeout=None):
        if self.acquire_error is not None:
            raise self.acquire_error
        self.leased += 1
        return object()

    async def release(self, conn):
        self.released.append(conn)

    async def close(self):
        self.close_calls += 1
        if self.hang_on_close:
            await asyncio.Event().wait()

    def terminate(self):
        self.terminated = True

    def get_size(self):
        return self.leased

    def get_idle_size(self):
        return 0


def _resource(fake, captured=None, **kwargs):
    async def factory(**options):
        if captured is not None:
            captured.update(options)
        return fake

    return ConnectionResource(
        "postgresql://u:p@localhost/db", pool_factory=factory, **kwargs,
    )


async def test_open_passes_pool_options():
    captured = {}
    resource = _resource(FakePool(), captured)
    await resource.open()
    assert captured == {
        "dsn": "postgresql://u:p@localhost/db",
        "min_size": 0,
        "max_size": 10,
        "max_inactive_connection_lifetime": 10.0,
        "timeout": 5.0,
    }


@pytest.mark.parametrize("min_size,max_size", [(0, 0), (-1, 5), (6, 5)])
def test_invalid_bounds_rejected(min_size, max_size):
    with pytest.raises(ValueError):
        ConnectionResource("postgresql://x", min_size=min_size, max_size=max_size)


async def test_acquire_timeout_maps_to_pool_exhausted():
    resource = _resource(FakePool(acquire_error=asyncio.TimeoutError()))
    with pytest.raises(PoolExhaustedError):
        await resource.acquire()


async def test_acquire_socket_error_maps_to_database_error():
    resource = _resource(FakePool(acquire_error=ConnectionRefusedError("refused")))
    with pytest.raises(DatabaseError) as exc_info:
        await resource.acquire()
    assert exc_info.value.operation == "connect"


async def test_connection_context_releases():
    fake = FakePool()
    resource = _resource(fake)
    async with resource.connection() as conn:
        assert conn is not None
    assert fake.released == [conn]


async def test_probe_success_releases_connection():
    fake = FakePool()
    resource = _resource(fake)
    assert await resource.probe() is True
    assert len(fake.released) == 1


async def test_probe_failure_returns_false():
    resource = _resource(FakePool(acquire_error=OSError("unreachable")))
    assert await resource.probe() is False


async def test_drain_and_close_is_idempotent():
    fake = FakePool()
    resource = _resource(fake)
    await resource.open()
    await resource.drain_and_close(1.0)
    await resource.drain_and_close(1.0)
    assert fake.close_calls == 1
    assert resource.closed
    assert resource.stats() == {"status": "closed"}


async def test_drain_timeout_terminates():
    fake = FakePool(hang_on_close=True)
    resource = _resource(fake)
    await resource.open()
    await resource.drain_and_close(0.05)
    assert fake.terminated


async def test_close_without_open_makes_no_pool():
    captured = {}
    resource = _resource(FakePool(), captured)
    await resource.drain_and_close(1.0)
    assert captured == {}
    with pytest.raises(DatabaseError):
        await resource.open()


async def test_stats_reports_pool_size():
    resource = _resource(FakePool())
    assert resource.stats() == {"status": "not_initialized"}
    await resource.acquire()
    assert resource.stats() == {"size": 1, "idle": 0, "max_size": 10}
