"""Security Filters - user-agent, suspicious-path and rate-limit gates, in that order.

Invariants:
    - Filters run before body parsing and session work; rejected requests touch no database
    - User-agent and path violations -> 403 "Access denied." (plain text)
    - Rate-limit violations -> 429 "Ip bloqueado." (plain text)
    - Every path rejection is logged with the decoded offending path
"""

import logging

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from plataforma.core.errors import SecurityRejection
from plataforma.core.security_rules import (
    decode_path, find_suspicious_pattern, is_blocked_user_agent,
)
from plataforma.services.rate_limiter import RateLimiter, client_ip

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied."
IP_BLOCKED = "Ip bloqueado."


class SecurityFilterMiddleware(BaseHTTPMiddleware):
    """Shed bots, scanner probes and abusive clients before any real work."""

    def __init__(self, app, *, rate_limiter: RateLimiter, trusted_proxy_hops: int = 1) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter
        self._trusted_proxy_hops = trusted_proxy_hops

    async def dispatch(self, request: Request, call_next):
        ip = client_ip(request, self._trusted_proxy_hops)
        rejection = self._inspect(request, ip)
        if rejection is not None:
            return PlainTextResponse(rejection.body, status_code=rejection.http_status)
        return await call_next(request)

    def _inspect(self, request: Request, ip: str) -> SecurityRejection | None:
        user_agent = request.headers.get("user-agent")
        if is_blocked_user_agent(user_agent):
            logger.info(
                "Blocked user-agent",
                extra={"client_ip": ip, "user_agent": user_agent, "path": request.url.path},
            )
            return SecurityRejection("user_agent", ACCESS_DENIED, 403)

        for candidate in _path_candidates(request):
            pattern = find_suspicious_pattern(candidate)
            if pattern is not None:
                logger.warning(
                    f"Suspicious path blocked: {decode_path(candidate)}",
                    extra={"client_ip": ip, "path": decode_path(candidate), "pattern": pattern},
                )
                return SecurityRejection("suspicious_path", ACCESS_DENIED, 403)

        decision = self._rate_limiter.check(ip)
        if not decision.admitted:
            if decision.count == self._rate_limiter.limit + 1:
                logger.warning(
                    f"Rate limit exceeded ({self._rate_limiter.limit} requests)",
                    extra={"client_ip": ip},
                )
            return SecurityRejection("rate_limit", IP_BLOCKED, 429)
        return None


def _path_candidates(request: Request) -> list[str]:
    """Decoded path plus the raw request target, which still holds '..' segments."""
    candidates = [request.url.path]
    raw = request.scope.get("raw_path")
    if raw:
        raw_text = raw.decode("latin-1")
        if raw_text != request.url.path:
            candidates.append(raw_text)
    return candidates
