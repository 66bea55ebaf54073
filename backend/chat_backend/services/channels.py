"""
Channel directory - lookup and creation of chat channels.
"""
import logging
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from chat_backend.models.channel import Channel
from chat_backend.schemas.chat import ChannelOut

logger = logging.getLogger(__name__)


def parse_channel_id(value: str) -> Optional[UUID]:
    """Parse a channel id, returning None when it is not a UUID."""
    try:
        return UUID(str(value))
    except ValueError:
        return None


def list_channels(db: Session) -> List[Channel]:
    return db.query(Channel).order_by(Channel.name).all()


def get_channel(db: Session, channel_id: UUID) -> Optional[Channel]:
    return db.query(Channel).filter(Channel.id == channel_id).first()


def get_channel_by_name(db: Session, name: str) -> Optional[Channel]:
    return db.query(Channel).filter(Channel.name == name).first()


def create_channel(db: Session, name: str) -> Channel:
    """Create a channel. Names are globally unique."""
    channel = Channel(name=name)
    db.add(channel)
    db.commit()
    db.refresh(channel)
    logger.info(f"Channel created: {name} ({channel.id})")
    return channel


def channel_to_out(channel: Channel) -> ChannelOut:
    return ChannelOut(id=str(channel.id), name=channel.name)


class SqlChannelDirectory:
    """Channel existence checks for the gateway, one short session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def exists(self, channel_id: str) -> bool:
        channel_uuid = parse_channel_id(channel_id)
        if channel_uuid is None:
            return False
        db = self.session_factory()
        try:
            return get_channel(db, channel_uuid) is not None
        finally:
            db.close()
