import math
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class InboundWebhookPayload(BaseModel):
    """Inbound message as posted by the WhatsApp gateway."""

    model_config = ConfigDict(extra="allow")

    is_group: bool = False
    is_from_me: bool = False
    message_type: Optional[str] = None
    from_id: Optional[str] = None
    from_name: Optional[str] = None
    message_text: Optional[str] = None
    message_id: Optional[str] = None
    media_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("media_url", "mediaUrl"))
    url: Optional[str] = None
    timestamp: Optional[int] = None

    @field_validator("is_group", "is_from_me", mode="before")
    @classmethod
    def coerce_flag(cls, value: object) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes"}
        return bool(value)

    @field_validator("from_id", "message_id", mode="before")
    @classmethod
    def coerce_identifier(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: object) -> Optional[int]:
        """Epoch seconds; anything else the gateway sends is dropped."""
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else None
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        return None


WebhookStatus = Literal["ignored", "replied_trigger", "replied_ai", "no_reply"]


class WebhookResponse(BaseModel):
    status: WebhookStatus
