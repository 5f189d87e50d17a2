from app.schemas.broadcast import (
    BroadcastRecipient,
    BroadcastRequest,
    BroadcastResponse,
    BroadcastStatusResponse,
    ProcessBroadcastRequest,
    ProcessBroadcastResponse,
    ReleaseStaleResponse,
)
from app.schemas.webhook import InboundWebhookPayload, WebhookResponse

__all__ = [
    "BroadcastRecipient",
    "BroadcastRequest",
    "BroadcastResponse",
    "BroadcastStatusResponse",
    "InboundWebhookPayload",
    "ProcessBroadcastRequest",
    "ProcessBroadcastResponse",
    "ReleaseStaleResponse",
    "WebhookResponse",
]
