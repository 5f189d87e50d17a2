import uuid
from enum import Enum

from sqlalchemy import Column, Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.sql import func

from app.database import Base


class InboxStatus(str, Enum):
    RECEIVED = "received"
    REPLIED_TRIGGER = "replied_trigger"
    REPLIED_AI = "replied_ai"
    NO_REPLY = "no_reply"


class InboxMessage(Base):
    __tablename__ = "inbox"
    __table_args__ = (
        UniqueConstraint("user_id", "message_id", name="inbox_user_id_message_id_key"),
        Index("ix_inbox_user_phone_created", "user_id", "phone", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    message_id = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    name = Column(Text)
    inbox_type = Column(Text)
    inbox_message = Column(Text)
    reply_type = Column(Text)
    reply_message = Column(Text)
    reply_image = Column(Text)
    status = Column(Text, nullable=False, default=InboxStatus.RECEIVED.value)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
