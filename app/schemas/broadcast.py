from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class BroadcastRecipient(BaseModel):
    phone: str
    name: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def strip_phone(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("phone must not be empty")
        return value


class BroadcastRequest(BaseModel):
    user_id: UUID
    recipients: list[BroadcastRecipient]
    message: str
    category_id: Optional[UUID] = None
    media_type: Literal["text", "image", "video", "document"] = "text"
    media_url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    delay_min: int = Field(default=1, ge=0)
    delay_max: int = Field(default=3, ge=0)
    use_personalization: bool = False
    template_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "BroadcastRequest":
        if not self.recipients:
            raise ValueError("recipients must not be empty")
        if self.delay_max < self.delay_min:
            raise ValueError("delay_max must be >= delay_min")
        if self.media_type != "text" and not self.media_url:
            raise ValueError(f"media_url is required for media_type={self.media_type}")
        return self


class BroadcastResponse(BaseModel):
    success: bool
    broadcast_id: UUID
    total: int
    scheduled: bool = False


class ProcessBroadcastRequest(BaseModel):
    log_id: Optional[UUID] = Field(default=None, validation_alias=AliasChoices("logId", "log_id"))


class ProcessBroadcastResponse(BaseModel):
    message: str
    processed: int
    sent: int
    failed: int
    retried: int


class BroadcastStatusResponse(BaseModel):
    broadcast_id: UUID
    status: str
    total_recipients: int
    total_sent: int
    total_failed: int


class ReleaseStaleResponse(BaseModel):
    released: int
