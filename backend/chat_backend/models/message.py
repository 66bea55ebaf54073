"""
Message model for storing channel chat messages.

Messages are immutable once written. The author's username is copied onto
the row at creation time so later renames never rewrite history.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from chat_backend.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base):
    """
    A single message posted to a channel.

    The autoincrement id follows insertion order and breaks timestamp ties
    when a channel's history is read back.
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)

    channel_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("channels.id"),
        nullable=False,
        index=True,
    )

    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )

    # Display name at the time of posting
    username = Column(String, nullable=False)

    content = Column(Text, nullable=False)

    # Reply threads: parent message, if any
    parent_id = Column(
        Integer,
        ForeignKey("messages.id"),
        nullable=True,
        index=True,
    )

    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Relationships
    replies = relationship("Message", back_populates="parent")
    parent = relationship("Message", back_populates="replies", remote_side=[id])
