"""
Live order notifications over WebSockets.

Connections join named groups and receive whatever is emitted to them while
they are connected. Delivery is best effort: nothing is queued for absent
listeners and nothing is retried, clients re-fetch state when they (re)connect.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

STAFF_GROUP = "staff"

# seconds a single socket may take to accept a push
SEND_TIMEOUT = 2.0

EVENT_NEW_ORDER = "new_order"
EVENT_STATUS_CHANGED = "status_changed"


def user_group(user_id: int) -> str:
    return f"user:{user_id}"


def order_group(order_id: int) -> str:
    return f"order:{order_id}"


class ConnectionHub:
    """Group membership for live connections.

    A connection is anything with an async ``send_json(data)`` method,
    normally a ``fastapi.WebSocket``. All calls happen on the event loop.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT) -> None:
        self.send_timeout = send_timeout
        self._groups: Dict[str, Set[Any]] = defaultdict(set)
        self._memberships: Dict[Any, Set[str]] = defaultdict(set)

    def join(self, connection, group: str) -> None:
        self._groups[group].add(connection)
        self._memberships[connection].add(group)
        logger.debug("Connection %s joined %s", id(connection), group)

    def leave(self, connection, group: str = None) -> None:
        """Drop ``connection`` from ``group``, or from every group when None."""
        groups = [group] if group is not None else list(self._memberships.get(connection, ()))
        for name in groups:
            members = self._groups.get(name)
            if members is not None:
                members.discard(connection)
                if not members:
                    del self._groups[name]
            memberships = self._memberships.get(connection)
            if memberships is not None:
                memberships.discard(name)
                if not memberships:
                    del self._memberships[connection]

    def members(self, group: str) -> Set[Any]:
        return set(self._groups.get(group, ()))

    def groups_of(self, connection) -> Set[str]:
        return set(self._memberships.get(connection, ()))

    async def emit(self, event: str, data: dict, *groups: str) -> int:
        """Send ``event`` once to every connection in any of ``groups``.

        Sends run concurrently and each is bounded by ``send_timeout``.
        Returns the number of connections that accepted the message. A
        connection whose send fails or times out is dropped from all its groups.
        """
        targets = set()
        for group in groups:
            targets |= self._groups.get(group, set())
        if not targets:
            return 0
        message = {"event": event, "data": data}
        connections = list(targets)
        results = await asyncio.gather(
            *(asyncio.wait_for(conn.send_json(message), self.send_timeout) for conn in connections),
            return_exceptions=True,
        )
        delivered = 0
        for connection, result in zip(connections, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropping connection %s after failed %s send (%s)",
                    id(connection), event, type(result).__name__,
                )
                self.leave(connection)
                continue
            delivered += 1
        logger.debug("%s sent to %d connection(s) in %s", event, delivered, ", ".join(groups))
        return delivered
