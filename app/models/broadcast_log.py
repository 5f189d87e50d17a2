import uuid

from sqlalchemy import Boolean, Column, Integer, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class BroadcastLog(Base):
    __tablename__ = "broadcast_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    category_id = Column(UUID(as_uuid=True))
    template_id = Column(UUID(as_uuid=True))
    message = Column(Text, nullable=False)
    media_type = Column(Text, default="text")
    media_url = Column(Text)
    status = Column(Text, nullable=False, default="processing")  # processing, scheduled, completed
    total_recipients = Column(Integer, nullable=False, default=0)
    total_sent = Column(Integer, nullable=False, default=0)
    total_failed = Column(Integer, nullable=False, default=0)
    scheduled_at = Column(TIMESTAMP(timezone=True))
    delay_min = Column(Integer)
    delay_max = Column(Integer)
    use_personalization = Column(Boolean, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    queue_items = relationship("BroadcastQueueItem", back_populates="broadcast_log")
