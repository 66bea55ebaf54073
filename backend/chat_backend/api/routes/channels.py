"""
Channel and message history API endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chat_backend.core.deps import get_db, get_history_reader
from chat_backend.core.exceptions import BadRequestError, NotFoundError
from chat_backend.models.user import User
from chat_backend.schemas.chat import ChannelOut, MessageOut
from chat_backend.services.channels import channel_to_out, list_channels, parse_channel_id
from chat_backend.services.messages import (
    get_message,
    list_channel_messages,
    list_thread_messages,
    message_to_out,
)

router = APIRouter(tags=["channels"])


@router.get("/channels", response_model=List[ChannelOut])
def get_channels(db: Session = Depends(get_db)):
    """List all channels. No authentication required."""
    return [channel_to_out(channel) for channel in list_channels(db)]


@router.get("/channels/{channel_id}/messages", response_model=List[MessageOut])
def get_channel_messages(
    channel_id: str,
    db: Session = Depends(get_db),
    reader: Optional[User] = Depends(get_history_reader),
):
    """
    Message history of a channel, oldest first.

    Unknown channels have an empty history.
    """
    channel_uuid = parse_channel_id(channel_id)
    if channel_uuid is None:
        raise BadRequestError("Invalid channel id")
    return [message_to_out(msg) for msg in list_channel_messages(db, channel_uuid)]


@router.get("/messages/{message_id}/thread", response_model=List[MessageOut])
def get_thread(
    message_id: int,
    db: Session = Depends(get_db),
    reader: Optional[User] = Depends(get_history_reader),
):
    """Replies to a message, oldest first."""
    if get_message(db, message_id) is None:
        raise NotFoundError("Message not found")
    return [message_to_out(msg) for msg in list_thread_messages(db, message_id)]
