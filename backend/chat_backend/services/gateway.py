"""
Real-time connection gateway.

Authenticates persistent connections with a session token, keeps track of
which channel each connection has joined and fans accepted messages out to
every connection subscribed to the target channel.

Inbound events are handled in two steps:
- `handle_event` turns (connection, event, payload) into a list of actions
  without touching I/O, so the policy can be tested without a transport
- `ConnectionGateway` executes those actions (membership updates,
  persistence, broadcast, replies to the sender)
"""

import asyncio
import enum
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from chat_backend.core.exceptions import (
    InvalidReferenceError,
    InvalidTokenError,
    MissingTokenError,
)
from chat_backend.schemas.auth import TokenData
from chat_backend.schemas.chat import SendMessagePayload
from chat_backend.services.auth import verify_session_token
from chat_backend.services.membership import MembershipRegistry, can_send

logger = logging.getLogger(__name__)


# Client -> server events
JOIN_CHANNEL = "joinChannel"
SEND_MESSAGE = "sendMessage"

# Server -> client events
RECEIVE_MESSAGE = "receiveMessage"
JOINED_CHANNEL = "joinedChannel"
ERROR = "error"

NOT_AUTHORIZED_MESSAGE = "You are not authorized to send messages to this channel."
SEND_FAILED_MESSAGE = "Failed to send message."
INVALID_PAYLOAD_MESSAGE = "Invalid message payload."
INVALID_CHANNEL_MESSAGE = "Invalid channel id."
CHANNEL_NOT_FOUND_MESSAGE = "Channel not found."


class Transport(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class MessageLog(Protocol):
    def append(
        self,
        channel_id: str,
        user_id: str,
        username: str,
        content: str,
        parent_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        ...


class ConnectionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"


@dataclass
class Connection:
    """A live client connection bound to one authenticated user."""

    user_id: str
    username: str
    transport: Optional[Transport] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ConnectionState = ConnectionState.UNAUTHENTICATED


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class Reply:
    """Send an event to the originating connection only."""
    event: str
    data: Any


@dataclass(frozen=True)
class JoinChannel:
    """Replace the connection's explicit channel with `channel_id`."""
    channel_id: str


@dataclass(frozen=True)
class Publish:
    """Persist a message, then broadcast it to the channel's members."""
    channel_id: str
    content: str
    parent_id: Optional[str] = None


Action = Union[Reply, JoinChannel, Publish]


# =============================================================================
# Event Handlers
# =============================================================================

def handle_join(connection: Connection, payload: Any) -> List[Action]:
    channel_id = payload.get("channelId") if isinstance(payload, dict) else payload
    if not isinstance(channel_id, str) or not channel_id:
        return [Reply(ERROR, INVALID_CHANNEL_MESSAGE)]
    return [JoinChannel(channel_id)]


def handle_send(
    registry: MembershipRegistry,
    connection: Connection,
    payload: Any,
) -> List[Action]:
    try:
        message = SendMessagePayload.model_validate(payload)
    except ValidationError:
        return [Reply(ERROR, INVALID_PAYLOAD_MESSAGE)]

    if not can_send(registry, connection.id, message.channel_id):
        logger.info(
            f"Rejected message from {connection.username} to {message.channel_id}: not a member"
        )
        return [Reply(ERROR, NOT_AUTHORIZED_MESSAGE)]

    return [Publish(message.channel_id, message.content, message.parent_id)]


def handle_event(
    registry: MembershipRegistry,
    connection: Connection,
    event: str,
    payload: Any,
) -> List[Action]:
    """
    Decide what an inbound event should do.

    Events from connections that are not authenticated produce no actions.
    """
    if connection.state is not ConnectionState.AUTHENTICATED:
        return []
    if event == JOIN_CHANNEL:
        return handle_join(connection, payload)
    if event == SEND_MESSAGE:
        return handle_send(registry, connection, payload)
    return [Reply(ERROR, f"Unknown event: {event}")]


# =============================================================================
# Gateway
# =============================================================================

class ConnectionGateway:
    """
    Owns the live connections and the membership registry for one process.

    Attributes:
        registry: Channel membership table
        message_log: Storage for accepted messages (blocking; run in a worker thread)
        channel_exists: Optional directory lookup; when set, joins to unknown
            channels are refused
        global_room: Room every authenticated connection belongs to
    """

    def __init__(
        self,
        registry: MembershipRegistry,
        message_log: MessageLog,
        global_room: str = "global",
        channel_exists: Optional[Callable[[str], bool]] = None,
        token_verifier: Callable[[str], TokenData] = verify_session_token,
    ):
        self.registry = registry
        self.message_log = message_log
        self.global_room = global_room
        self.channel_exists = channel_exists
        self.token_verifier = token_verifier
        self._connections: Dict[str, Connection] = {}
        self._channel_locks: Dict[str, asyncio.Lock] = {}
        # Publishes holding or waiting on each channel lock
        self._lock_users: Dict[str, int] = defaultdict(int)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def channel_lock_count(self) -> int:
        return len(self._channel_locks)

    def authenticate(self, token: Optional[str]) -> TokenData:
        """
        Verify the token presented at handshake time.

        Raises:
            MissingTokenError: No token was presented
            InvalidTokenError: The token is tampered with or expired
        """
        if not token:
            raise MissingTokenError()
        try:
            return self.token_verifier(token)
        except InvalidTokenError as e:
            logger.info(f"Handshake rejected: {e.message}")
            raise InvalidTokenError() from e

    def open(self, identity: TokenData, transport: Transport) -> Connection:
        """Register an authenticated connection and subscribe it to the global room."""
        connection = Connection(
            user_id=identity.user_id,
            username=identity.username or "",
            transport=transport,
            state=ConnectionState.AUTHENTICATED,
        )
        self._connections[connection.id] = connection
        self.registry.add(connection.id, self.global_room)
        logger.info(f"a user connected: {connection.username}")
        return connection

    async def dispatch(self, connection: Connection, event: str, payload: Any) -> None:
        """Handle one inbound event and execute the resulting actions."""
        for action in handle_event(self.registry, connection, event, payload):
            await self._execute(connection, action)

    def disconnect(self, connection: Connection) -> None:
        """Release every subscription of the connection. Idempotent."""
        if connection.state is ConnectionState.DISCONNECTED:
            return
        connection.state = ConnectionState.DISCONNECTED
        self._release_locks(self.registry.leave_all(connection.id))
        self._connections.pop(connection.id, None)
        logger.info(f"user disconnected: {connection.username}")

    def shutdown(self) -> None:
        for connection in list(self._connections.values()):
            self.disconnect(connection)

    async def broadcast(self, channel_id: str, event: str, data: Any) -> None:
        """Deliver an event to every connection currently subscribed to a channel."""
        for connection_id in self.registry.members(channel_id):
            target = self._connections.get(connection_id)
            if target is None:
                continue
            await self._send(target, event, data)

    async def _execute(self, connection: Connection, action: Action) -> None:
        if isinstance(action, Reply):
            await self._send(connection, action.event, action.data)
        elif isinstance(action, JoinChannel):
            await self._join(connection, action.channel_id)
        elif isinstance(action, Publish):
            await self._publish(connection, action)

    async def _join(self, connection: Connection, channel_id: str) -> None:
        if self.channel_exists is not None:
            try:
                exists = await run_in_threadpool(self.channel_exists, channel_id)
            except Exception:
                logger.exception(f"Channel lookup failed for {channel_id}")
                await self._send(connection, ERROR, SEND_FAILED_MESSAGE)
                return
            if not exists:
                await self._send(connection, ERROR, CHANNEL_NOT_FOUND_MESSAGE)
                return

        if connection.state is not ConnectionState.AUTHENTICATED:
            return
        left = self.registry.join_exclusive(connection.id, channel_id, keep=(self.global_room,))
        self._release_locks(left)
        logger.info(f"{connection.username} joined channel: {channel_id}")
        await self._send(connection, JOINED_CHANNEL, {"channelId": channel_id})

    async def _publish(self, connection: Connection, action: Publish) -> None:
        # One message at a time per channel keeps fan-out in acceptance order
        lock = self._channel_locks.setdefault(action.channel_id, asyncio.Lock())
        self._lock_users[action.channel_id] += 1
        try:
            async with lock:
                message = await run_in_threadpool(
                    self.message_log.append,
                    action.channel_id,
                    connection.user_id,
                    connection.username,
                    action.content,
                    action.parent_id,
                )
                logger.info(
                    f"Message from {connection.username} in {action.channel_id}: {action.content}"
                )
                await self.broadcast(action.channel_id, RECEIVE_MESSAGE, message)
        except InvalidReferenceError as e:
            logger.info(f"Rejected message from {connection.username} to {action.channel_id}: {e.message}")
            await self._send(connection, ERROR, e.message)
        except Exception:
            logger.exception(f"Error sending message to {action.channel_id}")
            await self._send(connection, ERROR, SEND_FAILED_MESSAGE)
        finally:
            self._lock_users[action.channel_id] -= 1
            if not self._lock_users[action.channel_id]:
                del self._lock_users[action.channel_id]
            self._release_locks([action.channel_id])

    def _release_locks(self, channel_ids) -> None:
        """Drop ordering locks of channels nobody is subscribed to or publishing in."""
        for channel_id in channel_ids:
            if channel_id not in self._channel_locks or channel_id in self._lock_users:
                continue
            if not self.registry.members(channel_id):
                del self._channel_locks[channel_id]

    async def _send(self, connection: Connection, event: str, data: Any) -> None:
        if connection.state is ConnectionState.DISCONNECTED or connection.transport is None:
            return
        try:
            await connection.transport.send_json({"event": event, "data": data})
        except Exception as e:
            # Peer went away mid-send; its disconnect handler cleans up
            logger.debug(f"Dropped {event} for {connection.username}: {e}")
