"""Session Schemas - public view of the request's session.

Invariants:
    - The sid is never echoed back; the signed cookie is the only carrier
"""

from datetime import datetime

from pydantic import BaseModel


class SessionView(BaseModel):
    """What GET /auth/session reports about the current session."""
    active: bool
    authenticated: bool = False
    user_id: str | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None


class LogoutResponse(BaseModel):
    logged_out: bool
