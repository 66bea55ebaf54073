"""
In-memory channel membership for live connections.

The registry maps channel ids to the connections currently subscribed to
them (and back). It lives only in this process: it is rebuilt empty on
restart and is not shared between instances.
"""

import logging
from collections import defaultdict
from threading import Lock
from typing import Dict, FrozenSet, Iterable, Set

logger = logging.getLogger(__name__)


class MembershipRegistry:
    """
    Channel -> connections table plus its reverse index.

    All mutations go through a lock so the table stays consistent when
    handlers run on a thread pool as well as on the event loop.
    """

    def __init__(self):
        self._members: Dict[str, Set[str]] = defaultdict(set)
        self._channels: Dict[str, Set[str]] = defaultdict(set)
        self._lock = Lock()

    def add(self, connection_id: str, channel_id: str) -> None:
        """Subscribe a connection to a channel without leaving others."""
        with self._lock:
            self._members[channel_id].add(connection_id)
            self._channels[connection_id].add(channel_id)

    def join_exclusive(
        self,
        connection_id: str,
        channel_id: str,
        keep: Iterable[str] = (),
    ) -> Set[str]:
        """
        Replace the connection's subscriptions with `channel_id`.

        Channels listed in `keep` (the global room) are left untouched.

        Returns:
            The channels the connection was removed from
        """
        keep = set(keep)
        with self._lock:
            current = self._channels[connection_id]
            left = {c for c in current if c not in keep and c != channel_id}
            for old in left:
                self._discard(old, connection_id)
            current -= left
            current.add(channel_id)
            self._members[channel_id].add(connection_id)
        return left

    def leave_all(self, connection_id: str) -> Set[str]:
        """Drop every subscription of a connection. Safe to call repeatedly."""
        with self._lock:
            channels = self._channels.pop(connection_id, set())
            for channel_id in channels:
                self._discard(channel_id, connection_id)
        return channels

    def members(self, channel_id: str) -> FrozenSet[str]:
        """Snapshot of the connections subscribed to a channel."""
        with self._lock:
            return frozenset(self._members.get(channel_id, ()))

    def channels_of(self, connection_id: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._channels.get(connection_id, ()))

    def is_member(self, connection_id: str, channel_id: str) -> bool:
        with self._lock:
            return connection_id in self._members.get(channel_id, ())

    def _discard(self, channel_id: str, connection_id: str) -> None:
        # Caller holds the lock
        members = self._members.get(channel_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._members[channel_id]


def can_send(registry: MembershipRegistry, connection_id: str, channel_id: str) -> bool:
    """
    Authorization policy for outbound messages.

    A connection may post to a channel only while it is subscribed to it.
    Whether the channel exists in the directory is not consulted here.
    """
    return registry.is_member(connection_id, channel_id)
