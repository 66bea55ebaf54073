"""
Message log - append-only storage of channel messages.

Provides:
- Appending a message on behalf of an authenticated user
- Channel history in timestamp order (insertion order breaks ties)
- Reply lookup by parent message
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chat_backend.core.exceptions import InvalidReferenceError, PersistenceError
from chat_backend.models.message import Message
from chat_backend.schemas.chat import MessageOut
from chat_backend.services.channels import get_channel

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """SQLite drops the offset on read; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def message_to_out(msg: Message) -> MessageOut:
    """Convert a Message model to MessageOut schema."""
    return MessageOut(
        id=str(msg.id),
        channel_id=str(msg.channel_id),
        user_id=str(msg.user_id),
        username=msg.username,
        content=msg.content,
        parent_id=str(msg.parent_id) if msg.parent_id is not None else None,
        timestamp=as_utc(msg.timestamp),
    )


def create_message(
    db: Session,
    channel_id: UUID,
    user_id: UUID,
    username: str,
    content: str,
    parent_id: Optional[int] = None,
) -> Message:
    """
    Persist a new message.

    Args:
        db: Database session
        channel_id: Channel the message is posted to
        user_id: Author's user id
        username: Author's username, stored as-is
        content: Message body
        parent_id: Optional parent message id for replies

    Returns:
        The stored Message
    """
    message = Message(
        channel_id=channel_id,
        user_id=user_id,
        username=username,
        content=content,
        parent_id=parent_id,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def list_channel_messages(db: Session, channel_id: UUID) -> List[Message]:
    return (
        db.query(Message)
        .filter(Message.channel_id == channel_id)
        .order_by(Message.timestamp.asc(), Message.id.asc())
        .all()
    )


def list_thread_messages(db: Session, parent_id: int) -> List[Message]:
    return (
        db.query(Message)
        .filter(Message.parent_id == parent_id)
        .order_by(Message.timestamp.asc(), Message.id.asc())
        .all()
    )


def get_message(db: Session, message_id: int) -> Optional[Message]:
    return db.query(Message).filter(Message.id == message_id).first()


class SqlMessageLog:
    """
    Message log used by the real-time gateway.

    Each append runs in its own session so it can be called from a worker
    thread. The channel and any parent message are checked before the row
    is written. Returns the wire representation of the stored message.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def append(
        self,
        channel_id: str,
        user_id: str,
        username: str,
        content: str,
        parent_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            channel_uuid = UUID(channel_id)
            user_uuid = UUID(user_id)
            parent = int(parent_id) if parent_id is not None else None
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Invalid message reference: {e}")

        db = self.session_factory()
        try:
            if get_channel(db, channel_uuid) is None:
                raise InvalidReferenceError("Channel not found.")
            if parent is not None:
                parent_message = get_message(db, parent)
                if parent_message is None or parent_message.channel_id != channel_uuid:
                    raise InvalidReferenceError("Parent message not found.")

            message = create_message(
                db,
                channel_id=channel_uuid,
                user_id=user_uuid,
                username=username,
                content=content,
                parent_id=parent,
            )
            return message_to_out(message).model_dump(mode="json", by_alias=True)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store message in channel {channel_id}: {e}")
            raise PersistenceError()
        finally:
            db.close()
