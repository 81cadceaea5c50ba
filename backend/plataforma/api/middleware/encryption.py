"""Response Encryption - wraps the response writer and seals every body before it leaves.

Invariants:
    - Exempt paths (/webhook, /health by default) are passed through byte-for-byte
    - Status code and headers are preserved; content-length/content-type are rewritten for the envelope
    - Empty bodies, HEAD requests and 204/304 responses are not transformed
    - Fail closed: if sealing raises, a 500 error envelope is sent and the plaintext never is

Design Decisions:
    - Pure ASGI: http.response.start is held back until the full body is buffered and sealed
"""

import logging

from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from plataforma.api.middleware.body_parsing import path_matches
from plataforma.core.errors import EncryptionFailureError, ErrorContext
from plataforma.infrastructure.response_cipher import (
    ENCRYPTED_MARKER_HEADER, ENCRYPTED_MARKER_VALUE, ResponseCipher,
)

logger = logging.getLogger(__name__)

_BODYLESS_STATUSES = frozenset({204, 304})


class EncryptionMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        *,
        cipher: ResponseCipher,
        exempt_paths: tuple[str, ...] = ("/webhook",),
    ) -> None:
        self.app = app
        self.cipher = cipher
        self.exempt_paths = exempt_paths

    def is_exempt(self, path: str) -> bool:
        return any(path_matches(path, p) for p in self.exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.is_exempt(scope["path"]):
            await self.app(scope, receive, send)
            return

        start: Message | None = None
        chunks: list[bytes] = []

        async def sealing_send(message: Message) -> None:
            nonlocal start
            if message["type"] == "http.response.start":
                start = message
                return
            if message["type"] != "http.response.body":
                await send(message)
                return
            chunks.append(message.get("body", b""))
            if message.get("more_body", False):
                return
            await self._flush(scope, receive, send, start, b"".join(chunks))

        await self.app(scope, receive, sealing_send)

    async def _flush(
        self, scope: Scope, receive: Receive, send: Send, start: Message, body: bytes,
    ) -> None:
        if (
            not body
            or scope.get("method") == "HEAD"
            or start["status"] in _BODYLESS_STATUSES
        ):
            await send(start)
            await send({"type": "http.response.body", "body": body, "more_body": False})
            return

        try:
            sealed = self.cipher.seal(body)
        except Exception as e:
            error = EncryptionFailureError(str(e), ErrorContext(path=scope["path"]))
            logger.error(
                f"Withholding response: {error.message}",
                extra={"path": scope["path"], "error_code": error.code,
                       "status_code": start["status"]},
                exc_info=True,
            )
            response = JSONResponse(error.to_response(), status_code=error.http_status)
            await response(scope, receive, send)
            return

        headers = MutableHeaders(raw=list(start["headers"]))
        headers["content-length"] = str(len(sealed))
        headers["content-type"] = "application/json"
        headers[ENCRYPTED_MARKER_HEADER] = ENCRYPTED_MARKER_VALUE
        await send({**start, "headers": headers.raw})
        await send({"type": "http.response.body", "body": sealed, "more_body": False})
