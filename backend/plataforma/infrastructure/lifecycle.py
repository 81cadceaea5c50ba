"""Lifecycle Controller - ordered, bounded startup and idempotent shutdown.

Invariants:
    - Startup order: pool probe -> schema authenticate -> ensure tables -> READY | DEGRADED
    - Every startup step is bounded; a database failure degrades, never blocks or aborts boot
    - `ready` is a one-shot signal, set once the state settles (READY, DEGRADED or FAILED)
    - shutdown() runs its close sequence at most once, even if signalled twice
    - Shutdown order: stop session sweep -> close schema layer -> drain/close pool;
      each step bounded by the grace period, failures logged and never raised

Design Decisions:
    - Status is an explicit StartupStatus token exposed via app.state.lifecycle, not module globals
    - Best-effort continuation: operators watch logs and /health ("degraded") instead of the
      service refusing to start while the database is unavailable
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from plataforma.core.errors import AuthTimeoutError, SchemaInitError
from plataforma.core.startup_state import StartupState, StartupStatus
from plataforma.infrastructure.bounded import run_bounded
from plataforma.infrastructure.connection_pool import ConnectionResource
from plataforma.infrastructure.database import SchemaManager
from plataforma.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# Outer bounds exceed the inner timeouts so the inner layer fires (and logs) first
_BOUND_MARGIN_SECONDS = 1.0


class LifecycleController:
    """Owns process-wide startup state and the shutdown sequence."""

    def __init__(
        self,
        pool: ConnectionResource,
        schema: SchemaManager,
        *,
        auth_timeout: float = 10.0,
        sync_timeout: float = 30.0,
        shutdown_grace: float = 10.0,
        session_store: SessionStore | None = None,
        prune_interval: float = 15 * 60,
    ):
        self.pool = pool
        self.schema = schema
        self.auth_timeout = auth_timeout
        self.sync_timeout = sync_timeout
        self.shutdown_grace = shutdown_grace
        self.session_store = session_store
        self.prune_interval = prune_interval
        self.status = StartupStatus()
        self.ready = asyncio.Event()
        self._shutdown_lock = asyncio.Lock()
        self._shut_down = False
        self._sweeper: asyncio.Task | None = None

    @property
    def state(self) -> StartupState:
        return self.status.state

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # ─── Startup ────────────────────────────────────────────────

    async def startup(self) -> StartupStatus:
        self._enter(StartupState.POOL_PROBING)
        await self._probe_pool()

        self._enter(StartupState.SCHEMA_INITIALIZING)
        await self._authenticate()
        await self._ensure_tables()

        self.status.settle()
        self._log_settled()
        self.ready.set()
        self._start_sweeper()
        return self.status

    async def _probe_pool(self) -> None:
        try:
            ok = await run_bounded(
                self.pool.probe,
                self.pool.connect_timeout + _BOUND_MARGIN_SECONDS,
                label="pool.probe",
            )
        except Exception as e:
            logger.warning(f"Pool probe did not complete: {e}")
            ok = False
        if not ok:
            self.status.record_degradation("pool_probe")

    async def _authenticate(self) -> None:
        try:
            await run_bounded(
                self.schema.authenticate,
                self.auth_timeout,
                label="schema.authenticate",
                on_timeout=lambda: AuthTimeoutError(self.auth_timeout),
            )
        except Exception as e:
            logger.warning(
                f"Database authentication failed, continuing: {e}",
                extra={"step": "schema_authenticate"},
            )
            self.status.record_degradation("schema_authenticate")

    async def _ensure_tables(self) -> None:
        try:
            ok = await run_bounded(
                self.schema.ensure_tables_exist,
                self.sync_timeout,
                label="schema.ensure_tables_exist",
                on_timeout=lambda: SchemaInitError(
                    f"timed out after {self.sync_timeout}s",
                ),
            )
        except Exception as e:
            logger.warning(
                f"Table synchronization failed, continuing with best-effort schema: {e}",
                extra={"step": "schema_sync"},
            )
            ok = False
        if not ok:
            self.status.record_degradation("schema_sync")

    def _enter(self, target: StartupState) -> None:
        self.status.advance(target)
        logger.info(
            f"Startup state -> {target.value}",
            extra={"startup_state": target.value},
        )

    def _log_settled(self) -> None:
        if self.status.state is StartupState.DEGRADED:
            logger.warning(
                f"Service starting DEGRADED (failed: {', '.join(self.status.failed_steps)})",
                extra={"startup_state": self.status.state.value},
            )
        else:
            logger.info(
                "Service READY", extra={"startup_state": self.status.state.value},
            )

    def mark_failed(self, reason: str) -> None:
        """Terminal failure: the process could not start listening."""
        self.status.fail(reason)
        logger.critical(
            f"Startup FAILED: {reason}",
            extra={"startup_state": StartupState.FAILED.value},
        )
        self.ready.set()

    # ─── Session sweep ──────────────────────────────────────────

    def _start_sweeper(self) -> None:
        if self.session_store is None or self.prune_interval <= 0:
            return
        self._sweeper = asyncio.create_task(self._sweep_sessions())

    async def _sweep_sessions(self) -> None:
        while True:
            await asyncio.sleep(self.prune_interval)
            try:
                await self.session_store.purge_expired()
            except Exception as e:
                logger.warning(f"Session expiry sweep failed: {e}")

    # ─── Shutdown ───────────────────────────────────────────────

    async def shutdown(self) -> None:
        async with self._shutdown_lock:
            if self._shut_down:
                logger.info("Shutdown already completed, ignoring repeat request")
                return
            self._shut_down = True
            logger.info("Shutting down: closing schema layer and connection pool")
            await self._stop_sweeper()
            await self._close_step("schema.close", self.schema.close)
            await self._close_step(
                "pool.drain_and_close",
                lambda: self.pool.drain_and_close(self.shutdown_grace),
            )
            logger.info("Shutdown complete")

    async def _stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _close_step(
        self, label: str, close: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await run_bounded(
                close, self.shutdown_grace + _BOUND_MARGIN_SECONDS, label=label,
            )
        except Exception as e:
            logger.error(f"{label} failed during shutdown: {e}", exc_info=True)
