"""Auth Session Endpoints - inspect and end the cookie-bound session.

Invariants:
    - GET /auth/session never reveals the sid
    - POST /auth/logout deletes the row and clears the cookie (via SessionData.invalidate)
    - Login and user binding belong to the auth collaborator mounted under the same prefix
"""

from fastapi import APIRouter, Request

from plataforma.schemas.session import LogoutResponse, SessionView
from plataforma.services.session_store import SessionData

router = APIRouter(tags=["auth"])


def current_session(request: Request) -> SessionData | None:
    return getattr(request.state, "session", None)


@router.get("/session", response_model=SessionView)
async def read_session(request: Request):
    session = current_session(request)
    if session is None:
        return SessionView(active=False)
    return SessionView(
        active=True,
        authenticated=session.authenticated,
        user_id=session.user_id,
        created_at=session.created_at,
        expires_at=session.expires_at,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(request: Request):
    session = current_session(request)
    if session is None:
        return LogoutResponse(logged_out=False)
    session.invalidate()
    return LogoutResponse(logged_out=True)
