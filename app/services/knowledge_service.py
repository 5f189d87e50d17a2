from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import KnowledgeEntry

logger = get_logger("knowledge_service")

ENTRY_SEPARATOR = "\n---\n"


def get_knowledge_entries(db: Session, user_id: UUID) -> list[KnowledgeEntry]:
    return (
        db.query(KnowledgeEntry)
        .filter(KnowledgeEntry.user_id == user_id)
        .order_by(KnowledgeEntry.created_at.asc())
        .all()
    )


def format_knowledge_context(entries: list, max_chars: Optional[int] = None) -> str:
    """Flatten Q/A pairs into one block capped at max_chars."""
    limit = settings.knowledge_max_chars if max_chars is None else max_chars
    blocks = []
    for entry in entries:
        question = (getattr(entry, "question", None) or "").strip()
        answer = (getattr(entry, "answer", None) or "").strip()
        if not question and not answer:
            continue
        blocks.append(f"Q: {question}\nA: {answer}")

    if not blocks:
        return ""
    return ENTRY_SEPARATOR.join(blocks)[: max(limit, 0)]


def build_knowledge_context(db: Session, user_id: UUID, max_chars: Optional[int] = None) -> str:
    entries = get_knowledge_entries(db, user_id)
    context = format_knowledge_context(entries, max_chars=max_chars)
    logger.info(f"Knowledge context: {len(entries)} entries, {len(context)} chars")
    return context
