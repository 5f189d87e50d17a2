"""Operator alerts delivered to a Telegram chat."""

from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger

logger = get_logger("alert_service")

LEVEL_PREFIX = {"INFO": "[info]", "WARNING": "[warn]", "ERROR": "[error]", "CRITICAL": "[CRITICAL]"}
MAX_CONTEXT_VALUE_LENGTH = 300


def _format_alert(level: str, message: str, context: Optional[dict]) -> str:
    lines = [f"{LEVEL_PREFIX.get(level, '[alert]')} BalasinAja: {message}"]
    for key, value in (context or {}).items():
        lines.append(f"{key}: {str(value)[:MAX_CONTEXT_VALUE_LENGTH]}")
    return "\n".join(lines)


def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    """Best-effort alert; returns True only when Telegram accepted it."""
    if not settings.alert_bot_token or not settings.alert_chat_id:
        logger.warning(f"Alert not configured: {level} - {message}")
        return False

    try:
        with httpx.Client(timeout=10) as client:
            response = client.post(
                f"https://api.telegram.org/bot{settings.alert_bot_token}/sendMessage",
                json={"chat_id": settings.alert_chat_id, "text": _format_alert(level, message, context)},
            )
    except httpx.HTTPError as e:
        logger.error(f"Failed to send alert: {e}")
        return False
    return response.status_code == 200


def alert_error(message: str, context: Optional[dict] = None) -> bool:
    return send_alert("ERROR", message, context)


def alert_warning(message: str, context: Optional[dict] = None) -> bool:
    return send_alert("WARNING", message, context)
