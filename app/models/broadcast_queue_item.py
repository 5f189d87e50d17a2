import uuid

from sqlalchemy import Column, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class BroadcastQueueItem(Base):
    __tablename__ = "broadcast_queue"
    __table_args__ = (Index("ix_broadcast_queue_status_scheduled", "status", "scheduled_at"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    broadcast_log_id = Column(UUID(as_uuid=True), ForeignKey("broadcast_logs.id"), index=True)
    phone = Column(Text, nullable=False)
    name = Column(Text)
    message = Column(Text, nullable=False)
    media_type = Column(Text, default="text")
    media_url = Column(Text)
    # scheduled, pending, processing, sent, failed
    status = Column(Text, nullable=False, default="pending")
    retry_count = Column(Integer, nullable=False, default=0)
    scheduled_at = Column(TIMESTAMP(timezone=True))
    claimed_at = Column(TIMESTAMP(timezone=True))
    sent_at = Column(TIMESTAMP(timezone=True))
    error_message = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    broadcast_log = relationship("BroadcastLog", back_populates="queue_items")
