"""Webhook Intake - raw-body endpoint for the payment provider.

Invariants:
    - The handler receives the request body exactly as sent (no JSON parsing upstream)
    - Responses are never encrypted and no session is created for the caller
    - Provider-specific verification and business rules belong to the injected handler
"""

import logging
from collections.abc import Awaitable, Callable, Mapping

from fastapi import APIRouter, Request

from plataforma.schemas.webhook import WebhookAck

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhook", tags=["webhook"])

WebhookHandler = Callable[[bytes, Mapping[str, str]], Awaitable[None]]


async def log_only_handler(body: bytes, headers: Mapping[str, str]) -> None:
    logger.info(
        f"Webhook received ({len(body)} bytes, no handler configured)",
        extra={"path": "/webhook"},
    )


@router.post("", response_model=WebhookAck)
async def receive_webhook(request: Request):
    body = await request.body()
    handler: WebhookHandler = getattr(
        request.app.state, "webhook_handler", None,
    ) or log_only_handler
    await handler(body, request.headers)
    return WebhookAck(bytes=len(body))
