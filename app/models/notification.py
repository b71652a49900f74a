import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Text
from sqlalchemy.sql import func
from app.db.base import Base

class InAppNotification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="push")

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    url = Column(Text, nullable=True)
    article_id = Column(String(64), nullable=True)

    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
