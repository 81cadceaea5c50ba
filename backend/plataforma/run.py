"""Process entry point - programmatic uvicorn server for the platform API.

Invariants:
    - Exit code 0 after a clean, signal-driven shutdown
    - Exit code 1 when settings are invalid or the listener cannot bind;
      the lifecycle is marked FAILED and its resources are released first
    - uvicorn's graceful-shutdown timeout equals SHUTDOWN_GRACE_SECONDS

Usage:
    python -m plataforma.run
    plataforma                 # via pyproject.toml [project.scripts]
"""

import asyncio
import logging
import sys

import uvicorn
from pydantic import ValidationError

from plataforma.config import get_settings
from plataforma.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


async def serve(app=None) -> int:
    if app is None:
        from plataforma.main import app

    settings = app.state.settings
    lifecycle = app.state.lifecycle
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        timeout_graceful_shutdown=int(settings.shutdown_grace_seconds),
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except SystemExit:
        # uvicorn exits from startup() when the socket cannot be bound
        pass

    if not server.started:
        lifecycle.mark_failed(f"could not listen on {settings.host}:{settings.port}")
        await lifecycle.shutdown()
        return 1
    return 0


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging()
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)
    setup_logging(settings.log_level, settings.log_format)
    sys.exit(asyncio.run(serve()))


if __name__ == "__main__":
    main()
