"""Body Parsing - JSON parsing for every path except the raw-body webhook.

Invariants:
    - Requests under the exempt prefix (/webhook) reach their handler byte-for-byte untouched
    - Other requests with a JSON content type are parsed up front; parse errors -> 400, no handler runs
    - The parsed value is exposed as request.state.json_body and the raw body is replayed downstream

Design Decisions:
    - Pure ASGI instead of BaseHTTPMiddleware: the body has to be consumed once and replayed
"""

import json
import logging

from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from plataforma.core.errors import ErrorContext, MalformedBodyError

logger = logging.getLogger(__name__)


def _is_json(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def path_matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


class BodyParsingMiddleware:
    def __init__(self, app: ASGIApp, *, exempt_prefix: str = "/webhook") -> None:
        self.app = app
        self.exempt_prefix = exempt_prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or path_matches(scope["path"], self.exempt_prefix):
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        if not _is_json(headers.get("content-type", "")):
            await self.app(scope, receive, send)
            return

        body = await _read_body(receive)
        if body.strip():
            try:
                parsed = json.loads(body)
            except (ValueError, UnicodeDecodeError) as e:
                error = MalformedBodyError(str(e), ErrorContext(path=scope["path"]))
                logger.warning(
                    f"Rejected malformed JSON body: {e}",
                    extra={"path": scope["path"], "error_code": error.code},
                )
                response = JSONResponse(error.to_response(), status_code=error.http_status)
                await response(scope, receive, send)
                return
            scope.setdefault("state", {})["json_body"] = parsed

        await self.app(scope, _replay(body, receive), send)


async def _read_body(receive: Receive) -> bytes:
    chunks = []
    more_body = True
    while more_body:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)
    return b"".join(chunks)


def _replay(body: bytes, receive: Receive) -> Receive:
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay
