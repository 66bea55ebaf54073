from chat_backend.db.base import Base  # noqa: F401

from .user import User  # noqa: F401
from .channel import Channel  # noqa: F401
from .message import Message  # noqa: F401
