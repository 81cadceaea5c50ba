"""Webhook Schemas - acknowledgment returned to machine callers."""

from pydantic import BaseModel


class WebhookAck(BaseModel):
    received: bool = True
    bytes: int
