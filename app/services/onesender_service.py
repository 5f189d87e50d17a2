"""Outbound WhatsApp delivery through the tenant's OneSender gateway."""

from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.services.result import Result
from app.services.settings_service import GatewaySettings

logger = get_logger("onesender_service")

FAILURE_NOT_CONFIGURED = "not_configured"
FAILURE_PERMANENT = "permanent"
FAILURE_TRANSIENT = "transient"

MESSAGE_PRIORITY = 10
MEDIA_TYPES = {"image", "video", "document"}
PERMANENT_STATUS_CODES = {400, 404}
PERMANENT_ERROR_MARKERS = ("not registered", "not a whatsapp", "not on whatsapp")
NOT_ON_WHATSAPP_ERROR = "Nomor tidak terdaftar di WhatsApp"

SEND_PATH = "/api/v1/message/send"
MEDIA_PATH = "/api/v1/media"


def build_payload(
    to: str,
    message_type: str,
    body: str,
    media_url: Optional[str] = None,
    *,
    filename: Optional[str] = None,
) -> Optional[dict]:
    """Type-tagged gateway payload, or None for an unsupported type."""
    kind = (message_type or "text").strip().lower()
    payload: dict = {"to": to, "type": kind, "priority": MESSAGE_PRIORITY}

    if kind == "text":
        payload["text"] = {"body": body}
    elif kind in MEDIA_TYPES:
        media = {"link": media_url or "", "caption": body}
        if kind == "document" and filename:
            media["filename"] = filename
        payload[kind] = media
    else:
        return None
    return payload


def resolve_endpoint(api_url: str, message_type: str) -> str:
    """Image sends go to the media endpoint when the gateway exposes one."""
    if (message_type or "").strip().lower() == "image":
        return api_url.replace(SEND_PATH, MEDIA_PATH)
    return api_url


def classify_failure(status_code: Optional[int], error_text: str) -> str:
    if status_code in PERMANENT_STATUS_CODES:
        return FAILURE_PERMANENT
    lowered = (error_text or "").lower()
    if any(marker in lowered for marker in PERMANENT_ERROR_MARKERS):
        return FAILURE_PERMANENT
    return FAILURE_TRANSIENT


def send_message(
    gateway: Optional[GatewaySettings],
    to: str,
    message_type: str,
    body: str,
    media_url: Optional[str] = None,
    *,
    endpoint: Optional[str] = None,
    filename: Optional[str] = None,
) -> Result[int]:
    """POST one message to the gateway. Never retries; the caller owns retry policy."""
    if gateway is None or not gateway.api_url or not gateway.api_key:
        logger.error(f"OneSender API not configured, message to {to} not sent")
        return Result.failure("OneSender API not configured", FAILURE_NOT_CONFIGURED)

    payload = build_payload(to, message_type, body, media_url, filename=filename)
    if payload is None:
        logger.warning(f"send_message: unsupported message_type={message_type}")
        return Result.failure(f"Unsupported message type: {message_type}", FAILURE_PERMANENT)

    url = endpoint or gateway.api_url
    try:
        with httpx.Client(timeout=settings.gateway_timeout_seconds) as client:
            response = client.post(
                url,
                headers={
                    "Authorization": f"Bearer {gateway.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        logger.error(f"Invalid OneSender URL: {e}", extra={"context": {"to": to, "url": url}})
        return Result.failure(str(e) or "Invalid gateway URL", FAILURE_PERMANENT)
    except httpx.HTTPError as e:
        logger.error(f"Error sending to OneSender: {e}", extra={"context": {"to": to, "url": url}})
        return Result.failure(str(e) or e.__class__.__name__, FAILURE_TRANSIENT)

    if response.is_success:
        logger.info(
            "Message sent to OneSender",
            extra={"context": {"to": to, "type": payload["type"], "status": response.status_code}},
        )
        return Result.success(response.status_code, status_code=response.status_code)

    error_text = response.text or f"HTTP {response.status_code}"
    code = classify_failure(response.status_code, error_text)
    logger.error(
        f"OneSender API error: {response.status_code} {error_text[:200]}",
        extra={"context": {"to": to, "failure": code}},
    )
    if code == FAILURE_PERMANENT:
        error_text = NOT_ON_WHATSAPP_ERROR
    return Result.failure(error_text, code, status_code=response.status_code)
