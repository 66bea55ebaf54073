"""
Chat schemas for HTTP responses and real-time gateway frames.

Field aliases keep the wire format (`_id`, `channelId`, ...) that browser
clients already consume.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Channel Schemas
# =============================================================================

class ChannelOut(BaseModel):
    """Response schema for a channel."""
    id: str = Field(..., alias="_id")
    name: str

    class Config:
        populate_by_name = True


# =============================================================================
# Message Schemas
# =============================================================================

class MessageOut(BaseModel):
    """Response schema for a persisted message."""
    id: str = Field(..., alias="_id")
    channel_id: str = Field(..., alias="channelId")
    user_id: str = Field(..., alias="userId")
    username: str
    content: str
    parent_id: Optional[str] = Field(None, alias="parentId")
    timestamp: datetime

    class Config:
        populate_by_name = True


# =============================================================================
# Gateway Frames
# =============================================================================

class GatewayFrame(BaseModel):
    """A single event frame exchanged over the persistent connection."""
    event: str = Field(..., min_length=1)
    data: Any = None


class SendMessagePayload(BaseModel):
    """Payload of the client `sendMessage` event."""
    channel_id: str = Field(..., alias="channelId", min_length=1)
    content: str = Field(..., min_length=1, max_length=10000)
    parent_id: Optional[str] = Field(None, alias="parentId")

    class Config:
        populate_by_name = True
