"""Schema Manager - async SQLAlchemy engine, session factory and table bootstrap.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - All SQLAlchemy exceptions, socket errors and connect timeouts mapped to DatabaseError (core/errors.py)
    - asyncpg connection attempts are capped at pool_timeout
    - ensure_tables_exist() only creates missing tables; it never alters or drops
    - close() is idempotent; a second call is a no-op

Design Decisions:
    - Operation timeouts are not applied here: the lifecycle controller bounds authenticate()
      and ensure_tables_exist() with run_bounded so the policy lives in one place
    - expire_on_commit=False: prevents lazy-load issues in async context
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from plataforma.core.errors import DatabaseError
from plataforma.db.base import Base
import plataforma.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


class SchemaManager:
    """ORM layer: authenticates against the database and ensures tables exist."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 0,
        pool_timeout: float = 5.0,
    ):
        engine_kwargs: dict = {"pool_pre_ping": True}
        url = make_url(database_url)
        # SQLite (tests, local runs) uses a static/null pool with no sizing knobs
        if url.get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=3600,
            )
        if url.get_driver_name() == "asyncpg":
            # Connection attempts give up after pool_timeout instead of asyncpg's 60s default
            engine_kwargs["connect_args"] = {"timeout": pool_timeout}
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        except asyncio.TimeoutError as e:
            await session.rollback()
            logger.error(f"DB connect timed out: {e!r}")
            raise DatabaseError("Database connection timed out", "connect")
        except OSError as e:
            # Socket-level failures from the driver can surface unwrapped
            logger.error(f"DB connection error: {e}")
            raise DatabaseError("Database unreachable", "connect")
        finally:
            await session.close()

    async def authenticate(self) -> None:
        """Verify reachability and credentials. Raises DatabaseError on failure."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Database authentication failed: {e!r}")
            raise DatabaseError(str(e), "authenticate")
        logger.info("Database authentication succeeded")

    async def ensure_tables_exist(self) -> bool:
        """Create any missing tables. Returns False (logged) on failure."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Table synchronization failed: {e}", exc_info=True)
            return False
        logger.info(
            f"Table synchronization complete ({len(Base.metadata.tables)} tables)",
        )
        return True

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def close(self) -> None:
        """Dispose the engine and its pooled connections. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self.engine.dispose()
        logger.info("ORM engine disposed")
