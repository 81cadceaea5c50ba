"""Platform API - FastAPI application factory and request pipeline wiring.

Invariants:
    - Pipeline order per request (outermost first): CORS -> security filters ->
      body parsing (/webhook exempt) -> session -> encryption -> routes -> 404
    - Startup/shutdown run through the LifecycleController held on app.state.lifecycle
    - Routes registered explicitly (health, webhook, auth session, collaborators)
    - Global error handlers map PlataformaError -> structured responses

Design Decisions:
    - Factory with injectable collaborators: tests swap the database, pool and routers
      without touching module globals
    - Starlette runs the last-added middleware first, so add_middleware calls appear in
      reverse pipeline order
"""

import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plataforma.api.dispatcher import mount_collaborators
from plataforma.api.error_handlers import register_error_handlers
from plataforma.api.middleware.body_parsing import BodyParsingMiddleware
from plataforma.api.middleware.encryption import EncryptionMiddleware
from plataforma.api.middleware.security_filters import SecurityFilterMiddleware
from plataforma.api.middleware.session import SessionMiddleware
from plataforma.api.routes import auth, health, webhook
from plataforma.config import APP_VERSION, Settings, get_settings
from plataforma.infrastructure.connection_pool import ConnectionResource
from plataforma.infrastructure.database import SchemaManager
from plataforma.infrastructure.lifecycle import LifecycleController
from plataforma.infrastructure.observability import setup_logging
from plataforma.infrastructure.response_cipher import ResponseCipher
from plataforma.services.rate_limiter import RateLimiter
from plataforma.services.session_store import SessionStore

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)
    lifecycle: LifecycleController = app.state.lifecycle
    await lifecycle.startup()
    logger.info(f"Platform API started ({lifecycle.state.value}), port {settings.port}")
    yield
    logger.info("Platform API shutting down")
    await lifecycle.shutdown()


def create_app(
    settings: Settings | None = None,
    *,
    schema: SchemaManager | None = None,
    pool: ConnectionResource | None = None,
    rate_limiter: RateLimiter | None = None,
    collaborators: Mapping[str, APIRouter | list[APIRouter]] | None = None,
    webhook_handler=None,
) -> FastAPI:
    settings = settings or get_settings()
    schema = schema or SchemaManager(
        settings.database_url,
        pool_size=settings.pool_max_size,
        pool_timeout=settings.pool_connect_timeout_seconds,
    )
    pool = pool or ConnectionResource(
        settings.asyncpg_dsn,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        idle_timeout=settings.pool_idle_timeout_seconds,
        connect_timeout=settings.pool_connect_timeout_seconds,
    )
    session_store = SessionStore(schema, ttl_seconds=settings.session_ttl_seconds)
    rate_limiter = rate_limiter or RateLimiter(
        limit=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    cipher = ResponseCipher.from_settings(
        settings.response_encryption_key, settings.session_secret,
    )

    app = FastAPI(title="Plataforma API", version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.schema = schema
    app.state.pool = pool
    app.state.session_store = session_store
    app.state.cipher = cipher
    app.state.webhook_handler = webhook_handler
    app.state.lifecycle = LifecycleController(
        pool,
        schema,
        auth_timeout=settings.schema_auth_timeout_seconds,
        sync_timeout=settings.schema_sync_timeout_seconds,
        shutdown_grace=settings.shutdown_grace_seconds,
        session_store=session_store,
        prune_interval=settings.session_prune_interval_seconds,
    )

    # ─── Pipeline (innermost first) ─────────────────────────────
    app.add_middleware(
        EncryptionMiddleware,
        cipher=cipher,
        exempt_paths=tuple(settings.encryption_exempt_paths),
    )
    app.add_middleware(
        SessionMiddleware,
        store=session_store,
        secret=settings.session_secret,
        secure=settings.is_production,
        ttl_seconds=settings.session_ttl_seconds,
        no_create_prefixes=tuple(settings.session_no_create_paths),
        skip_prefixes=tuple(settings.session_skip_paths),
        store_timeout=settings.pool_connect_timeout_seconds,
    )
    app.add_middleware(BodyParsingMiddleware, exempt_prefix=WEBHOOK_PATH)
    app.add_middleware(
        SecurityFilterMiddleware,
        rate_limiter=rate_limiter,
        trusted_proxy_hops=settings.trusted_proxy_hops,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─── Routes ─────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(webhook.router)
    routers: dict[str, APIRouter | list[APIRouter]] = dict(collaborators or {})
    extra_auth = routers.get("/auth")
    routers["/auth"] = [auth.router] + (
        extra_auth if isinstance(extra_auth, list) else [extra_auth] if extra_auth else []
    )
    mount_collaborators(app, routers)

    register_error_handlers(app)
    return app


app = create_app()
