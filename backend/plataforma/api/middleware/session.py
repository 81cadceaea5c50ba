"""Session Middleware - attach or issue the database-backed session for each request.

Invariants:
    - Cookie `sid` carries the itsdangerous-signed session id; unsigned or tampered values are ignored
    - A request without a live session gets a new row and a fresh cookie
      (HttpOnly, SameSite=Lax, Max-Age=ttl, Secure only in production)
    - Machine paths (/webhook) never create sessions; an existing cookie is still resolved
    - Liveness paths (/health) skip the session layer entirely, so liveness never waits on the database
    - Every store call is bounded by store_timeout; database trouble or a timeout is logged
      and the request continues without a session
    - request.state.session is a SessionData or None, never absent
"""

import logging

from fastapi import Request
from itsdangerous import BadSignature, Signer
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from plataforma.api.middleware.body_parsing import path_matches
from plataforma.core.errors import PlataformaError
from plataforma.infrastructure.bounded import run_bounded
from plataforma.services.session_store import SessionData, SessionStore

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "sid"
_SIGNER_SALT = "plataforma.session"


class SessionCookieSigner:
    def __init__(self, secret: str) -> None:
        self._signer = Signer(secret, salt=_SIGNER_SALT)

    def sign(self, sid: str) -> str:
        return self._signer.sign(sid).decode("ascii")

    def unsign(self, value: str) -> str | None:
        try:
            return self._signer.unsign(value).decode("ascii")
        except (BadSignature, UnicodeDecodeError):
            return None


class SessionMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        *,
        store: SessionStore,
        secret: str,
        secure: bool,
        ttl_seconds: int,
        no_create_prefixes: tuple[str, ...] = ("/webhook",),
        skip_prefixes: tuple[str, ...] = ("/health",),
        store_timeout: float = 5.0,
    ) -> None:
        super().__init__(app)
        self._store = store
        self._signer = SessionCookieSigner(secret)
        self._secure = secure
        self._ttl_seconds = ttl_seconds
        self._no_create_prefixes = no_create_prefixes
        self._skip_prefixes = skip_prefixes
        self._store_timeout = store_timeout

    async def dispatch(self, request: Request, call_next):
        if any(path_matches(request.url.path, p) for p in self._skip_prefixes):
            request.state.session = None
            return await call_next(request)

        session = await self._resolve(request)
        if session is None and not self._creation_exempt(request.url.path):
            session = await self._issue(request)
        request.state.session = session

        response = await call_next(request)

        if session is not None:
            await self._commit(session, response)
        return response

    async def _bounded(self, operation, label: str):
        return await run_bounded(operation, self._store_timeout, label=label)

    def _creation_exempt(self, path: str) -> bool:
        return any(path_matches(path, p) for p in self._no_create_prefixes)

    async def _resolve(self, request: Request) -> SessionData | None:
        raw = request.cookies.get(SESSION_COOKIE_NAME)
        if not raw:
            return None
        sid = self._signer.unsign(raw)
        if sid is None:
            logger.info("Ignoring session cookie with invalid signature")
            return None
        try:
            return await self._bounded(lambda: self._store.load(sid), "session.load")
        except PlataformaError as e:
            logger.warning(
                f"Session lookup failed: {e.message}",
                extra={"path": request.url.path, "error_code": e.code},
            )
            return None

    async def _issue(self, request: Request) -> SessionData | None:
        try:
            return await self._bounded(self._store.create, "session.create")
        except PlataformaError as e:
            logger.warning(
                f"Session creation failed, continuing without session: {e.message}",
                extra={"path": request.url.path, "error_code": e.code},
            )
            return None

    async def _commit(self, session: SessionData, response: Response) -> None:
        try:
            if session.destroyed:
                await self._bounded(
                    lambda: self._store.destroy(session.sid), "session.destroy",
                )
                response.delete_cookie(SESSION_COOKIE_NAME, path="/")
                return
            if session.modified:
                await self._bounded(lambda: self._store.save(session), "session.save")
        except PlataformaError as e:
            logger.error(f"Session write-back failed: {e.message}", extra={"error_code": e.code})
            return
        if session.is_new:
            self._set_cookie(response, session.sid)

    def _set_cookie(self, response: Response, sid: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            self._signer.sign(sid),
            max_age=self._ttl_seconds,
            httponly=True,
            secure=self._secure,
            samesite="Lax",
            path="/",
        )
