import uuid

from sqlalchemy import Column, Index, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.sql import func

from app.database import Base


class Autoreply(Base):
    __tablename__ = "autoreplies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    trigger = Column(Text, nullable=False)
    message_type = Column(Text, nullable=False, default="text")  # text, image, document
    content = Column(Text, nullable=False)
    url_image = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # Same expression find_trigger matches on.
    __table_args__ = (
        Index("autoreplies_user_id_trigger_ci_key", user_id, func.lower(func.trim(trigger)), unique=True),
    )
