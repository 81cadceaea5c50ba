"""Health & Readiness Probes - liveness and readiness endpoints.

Invariants:
    - GET /health always returns 200 {"status": "OK", ...} while the process is up (liveness)
    - GET /health reports the startup state, so a DEGRADED boot is visible without log access
    - GET /health/ready returns 503 unless startup settled READY and the database answers
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from plataforma.config import APP_VERSION
from plataforma.core.startup_state import StartupState
from plataforma.schemas.health import HealthResponse, ReadinessResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health_check(request: Request):
    """Basic liveness probe. Returns 200 if the process is up."""
    lifecycle = request.app.state.lifecycle
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=APP_VERSION,
        startup=lifecycle.state.value,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request):
    """Readiness probe - startup state plus database connectivity."""
    lifecycle = request.app.state.lifecycle
    startup = lifecycle.status
    if startup.state is not StartupState.READY:
        return _not_ready(startup.state.value, startup.failed_steps, "startup_not_ready")
    if not await lifecycle.schema.health_check():
        return _not_ready(startup.state.value, startup.failed_steps, "database_unavailable")
    return ReadinessResponse(status="ready", startup=startup.state.value)


def _not_ready(state: str, failed_steps: list[str], reason: str) -> JSONResponse:
    body = ReadinessResponse(
        status="not_ready", startup=state, failed_steps=list(failed_steps), reason=reason,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump(),
    )
