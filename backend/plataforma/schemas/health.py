"""Health Schemas - liveness and readiness payloads."""

from typing import Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Liveness payload. status is always OK while the process serves requests."""
    status: Literal["OK"] = "OK"
    timestamp: str
    version: str
    startup: str


class ReadinessResponse(BaseModel):
    status: Literal["ready", "not_ready"]
    startup: str
    failed_steps: list[str] = []
    reason: str | None = None
