from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Autoreply


def normalize_trigger_text(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def find_trigger(db: Session, user_id: UUID, message_text: Optional[str]) -> Optional[Autoreply]:
    """Case-insensitive exact match of the whole trimmed message."""
    normalized = normalize_trigger_text(message_text)
    if not normalized:
        return None
    return (
        db.query(Autoreply)
        .filter(Autoreply.user_id == user_id, func.lower(func.trim(Autoreply.trigger)) == normalized)
        .order_by(Autoreply.created_at, Autoreply.id)
        .first()
    )


def render_trigger_content(template: str, *, phone: str, name: str) -> str:
    return (template or "").replace("{PHONE}", phone).replace("{NAME}", name or "")
