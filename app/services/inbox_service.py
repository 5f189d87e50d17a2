from typing import Optional
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import InboxMessage, InboxStatus
from app.services.message_service import NormalizedMessage

logger = get_logger("inbox_service")


def record_inbound_message(db: Session, user_id: UUID, message: NormalizedMessage) -> bool:
    """Persist the inbound message with status `received` and commit.

    Returns False when the message_id was already recorded for this tenant.
    Database errors propagate: the inbox row is the receipt guarantee.
    """
    stmt = (
        insert(InboxMessage)
        .values(
            user_id=user_id,
            message_id=message.message_id,
            phone=message.phone,
            name=message.name,
            inbox_type=message.message_type,
            inbox_message=message.text,
            status=InboxStatus.RECEIVED.value,
        )
        .on_conflict_do_nothing(index_elements=["user_id", "message_id"])
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount > 0


def mark_replied(
    db: Session,
    user_id: UUID,
    message_id: str,
    *,
    status: InboxStatus,
    reply_type: str,
    reply_message: str,
    reply_image: Optional[str] = None,
) -> None:
    db.query(InboxMessage).filter(
        InboxMessage.user_id == user_id,
        InboxMessage.message_id == message_id,
    ).update(
        {
            InboxMessage.reply_type: reply_type,
            InboxMessage.reply_message: reply_message,
            InboxMessage.reply_image: reply_image or "",
            InboxMessage.status: status.value,
        },
        synchronize_session=False,
    )
    db.commit()


def mark_no_reply(db: Session, user_id: UUID, message_id: str) -> None:
    db.query(InboxMessage).filter(
        InboxMessage.user_id == user_id,
        InboxMessage.message_id == message_id,
    ).update({InboxMessage.status: InboxStatus.NO_REPLY.value}, synchronize_session=False)
    db.commit()


def get_recent_history(
    db: Session,
    user_id: UUID,
    phone: str,
    *,
    exclude_message_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[InboxMessage]:
    """Most recent exchanges with this phone, newest first."""
    query = db.query(InboxMessage).filter(InboxMessage.user_id == user_id, InboxMessage.phone == phone)
    if exclude_message_id:
        query = query.filter(InboxMessage.message_id != exclude_message_id)
    rows = query.order_by(InboxMessage.created_at.desc()).limit(limit or settings.history_limit).all()
    logger.debug(f"Loaded {len(rows)} previous messages for {phone}")
    return rows
