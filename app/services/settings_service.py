"""Resolve per-tenant configuration from the key/value settings table."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Setting

logger = get_logger("settings_service")

KEY_GATEWAY_URL = "onesender_api_url"
KEY_GATEWAY_API_KEY = "onesender_api_key"
KEY_AI_VENDOR = "ai_vendor"
KEY_AI_API_KEY = "ai_api_key"
KEY_AI_MODEL = "ai_model"
KEY_SYSTEM_PROMPT = "system_prompt"

GATEWAY_KEYS = (KEY_GATEWAY_URL, KEY_GATEWAY_API_KEY)
AI_KEYS = (KEY_AI_VENDOR, KEY_AI_API_KEY, KEY_AI_MODEL, KEY_SYSTEM_PROMPT)

DEFAULT_AI_VENDOR = "lovable"
DEFAULT_SYSTEM_PROMPT = (
    "Anda adalah asisten AI yang membantu menjawab pertanyaan pelanggan dengan ramah dan profesional."
)


@dataclass(frozen=True)
class GatewaySettings:
    api_url: str
    api_key: str


@dataclass(frozen=True)
class AISettings:
    vendor: str = DEFAULT_AI_VENDOR
    api_key: str = ""
    model: Optional[str] = None
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass(frozen=True)
class TenantConfig:
    user_id: UUID
    gateway: Optional[GatewaySettings]
    ai: AISettings


def load_settings_map(db: Session, user_id: UUID, keys: tuple[str, ...]) -> dict[str, str]:
    rows = db.query(Setting).filter(Setting.user_id == user_id, Setting.key.in_(keys)).all()
    return {row.key: row.value for row in rows if row.value is not None}


def build_gateway_settings(values: dict[str, str]) -> Optional[GatewaySettings]:
    api_url = (values.get(KEY_GATEWAY_URL) or "").strip()
    api_key = (values.get(KEY_GATEWAY_API_KEY) or "").strip()
    if not api_url or not api_key:
        return None
    return GatewaySettings(api_url=api_url, api_key=api_key)


def build_ai_settings(values: dict[str, str]) -> AISettings:
    vendor = (values.get(KEY_AI_VENDOR) or "").strip().lower() or DEFAULT_AI_VENDOR
    model = (values.get(KEY_AI_MODEL) or "").strip() or None
    system_prompt = (values.get(KEY_SYSTEM_PROMPT) or "").strip() or DEFAULT_SYSTEM_PROMPT
    return AISettings(
        vendor=vendor,
        api_key=(values.get(KEY_AI_API_KEY) or "").strip(),
        model=model,
        system_prompt=system_prompt,
    )


def get_gateway_settings(db: Session, user_id: UUID) -> Optional[GatewaySettings]:
    gateway = build_gateway_settings(load_settings_map(db, user_id, GATEWAY_KEYS))
    if gateway is None:
        logger.warning("Gateway not configured", extra={"context": {"user_id": str(user_id)}})
    return gateway


def load_tenant_config(db: Session, user_id: UUID) -> TenantConfig:
    """Read every setting the reply pipeline needs in one query."""
    values = load_settings_map(db, user_id, GATEWAY_KEYS + AI_KEYS)
    config = TenantConfig(
        user_id=user_id,
        gateway=build_gateway_settings(values),
        ai=build_ai_settings(values),
    )
    if config.gateway is None:
        logger.warning("Gateway not configured", extra={"context": {"user_id": str(user_id)}})
    return config
