import uuid
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func

from chat_backend.db.base import Base


class Channel(Base):
    __tablename__ = "channels"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
