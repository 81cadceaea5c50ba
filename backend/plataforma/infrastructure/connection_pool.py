"""Connection Resource - bounded asyncpg pool with connect/idle timeouts.

Invariants:
    - Leased connections never exceed max_size (asyncpg queues the excess)
    - min_size defaults to 0: the pool shrinks to zero when idle, opening makes no connection
    - acquire() raises PoolExhaustedError after connect_timeout, DatabaseError on connectivity failure
    - probe() never raises; drain_and_close() is idempotent and bounded by a grace period
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import asyncpg

from plataforma.core.errors import DatabaseError, OperationTimeoutError, PoolExhaustedError
from plataforma.infrastructure.bounded import run_bounded

logger = logging.getLogger(__name__)

PoolFactory = Callable[..., Awaitable[Any]]

_CONNECTIVITY_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


async def _create_asyncpg_pool(**kwargs) -> asyncpg.Pool:
    return await asyncpg.create_pool(**kwargs)


class ConnectionResource:
    """Manages a bounded pool of relational-database connections."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 0,
        max_size: int = 10,
        idle_timeout: float = 10.0,
        connect_timeout: float = 5.0,
        pool_factory: PoolFactory = _create_asyncpg_pool,
    ):
        if max_size < 1 or min_size < 0 or min_size > max_size:
            raise ValueError(f"Invalid pool bounds: min={min_size} max={max_size}")
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.idle_timeout = idle_timeout
        self.connect_timeout = connect_timeout
        self._pool_factory = pool_factory
        self._pool: Any = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self):
        """Create the pool. With min_size=0 no connection is attempted yet."""
        if self._closed:
            raise DatabaseError("pool already closed", "open")
        if self._pool is None:
            self._pool = await self._pool_factory(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                max_inactive_connection_lifetime=self.idle_timeout,
                timeout=self.connect_timeout,
            )
        return self._pool

    async def acquire(self):
        """Lease a connection or fail after connect_timeout."""
        try:
            pool = await self.open()
            return await pool.acquire(timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Pool exhausted after {self.connect_timeout}s",
                extra={"pool_stats": self.stats()},
            )
            raise PoolExhaustedError(self.connect_timeout)
        except _CONNECTIVITY_ERRORS as e:
            logger.error(f"Database connectivity failure: {e}")
            raise DatabaseError("Connection could not be established", "connect")

    async def release(self, conn) -> None:
        if self._pool is None:
            return
        await self._pool.release(conn)

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[Any, None]:
        """Lease a connection for the duration of the block."""
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)

    async def probe(self) -> bool:
        """Single acquire/release smoke test. Logs the outcome either way."""
        try:
            conn = await self.acquire()
        except Exception as e:
            logger.error(f"Database connection probe failed: {e}")
            return False
        try:
            await self.release(conn)
        except Exception as e:
            logger.warning(f"Probe connection release failed: {e}")
        logger.info("Database connection probe succeeded")
        return True

    async def drain_and_close(self, grace_seconds: float) -> None:
        """Wait for leased connections (bounded), then close everything. Idempotent."""
        if self._closed:
            return
        self._closed = True
        pool = self._pool
        if pool is None:
            return
        # In-flight requests may still release into the pool while it drains
        try:
            await run_bounded(pool.close, grace_seconds, label="pool.drain")
            logger.info("Connection pool closed")
        except OperationTimeoutError:
            logger.warning("Connection pool drain timed out, terminating leased connections")
            pool.terminate()
        finally:
            self._pool = None

    def stats(self) -> dict:
        if self._pool is None:
            return {"status": "closed" if self._closed else "not_initialized"}
        return {
            "size": self._pool.get_size(),
            "idle": self._pool.get_idle_size(),
            "max_size": self.max_size,
        }
