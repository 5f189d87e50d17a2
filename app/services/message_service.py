import hashlib
import re
import uuid
from dataclasses import dataclass
from typing import Optional

from app.schemas.webhook import InboundWebhookPayload

SUPPORTED_MESSAGE_TYPES = {"text", "image", "document"}
AI_MESSAGE_TYPES = {"text", "image"}

_JID_SUFFIX_RE = re.compile(r"(@s\.whatsapp\.net|@g\.us|@newsletter|@lid)")


@dataclass(frozen=True)
class NormalizedMessage:
    message_id: str
    phone: str
    name: str
    message_type: str
    text: str
    image_url: Optional[str] = None


def is_eligible(payload: InboundWebhookPayload) -> bool:
    """Groups, our own echoes and unsupported types are never answered."""
    if payload.is_group or payload.is_from_me:
        return False
    return payload.message_type in SUPPORTED_MESSAGE_TYPES


def normalize_phone(from_id: Optional[str]) -> str:
    return _JID_SUFFIX_RE.sub("", str(from_id or "")).strip()


def build_inbound_message_id(
    message_id: Optional[str],
    from_id: Optional[str],
    timestamp: Optional[int],
    message_text: Optional[str],
    media_url: Optional[str] = None,
) -> str:
    if message_id and message_id.strip():
        return message_id.strip()
    if from_id and timestamp is not None:
        return f"{from_id}:{timestamp}"
    content = "\n".join(part for part in (message_text, media_url) if part)
    if from_id and content:
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
        return f"{from_id}:{digest}"
    return str(uuid.uuid4())


def normalize_inbound(payload: InboundWebhookPayload) -> NormalizedMessage:
    message_type = payload.message_type or "text"
    text = payload.message_text or ""
    media_url = (payload.media_url or payload.url or "").strip() or None
    image_url = media_url if message_type == "image" else None

    return NormalizedMessage(
        message_id=build_inbound_message_id(payload.message_id, payload.from_id, payload.timestamp, text, media_url),
        phone=normalize_phone(payload.from_id),
        name=(payload.from_name or "").strip(),
        message_type=message_type,
        text=text,
        image_url=image_url,
    )
