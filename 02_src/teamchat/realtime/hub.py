"""Broadcast group for realtime connections."""

from typing import Protocol

from ..logging_config import get_logger
from ..models import Envelope
from .connection import Connection

logger = get_logger(__name__)


TEAM_CHAT_GROUP = "team-chat"


class IBroadcastHub(Protocol):
    """Fan-out of realtime events to the team chat group."""

    def add(self, connection: Connection) -> None:
        """Add a connection to the group."""
        ...

    def remove(self, connection_id: str) -> None:
        """Remove a connection from the group."""
        ...

    def broadcast(self, envelope: Envelope, exclude: str | None = None) -> int:
        """Queue an event for every member connection; returns the count queued."""
        ...

    def send_to(self, connection_id: str, envelope: Envelope) -> bool:
        """Queue an event for one connection."""
        ...


class BroadcastHub:
    """In-process broadcast group. Delivery is fire-and-forget."""

    def __init__(self, name: str = TEAM_CHAT_GROUP):
        self.name = name
        self._connections: dict[str, Connection] = {}

    def add(self, connection: Connection) -> None:
        """Add a connection to the group."""
        self._connections[connection.id] = connection

    def remove(self, connection_id: str) -> None:
        """Remove a connection from the group."""
        self._connections.pop(connection_id, None)

    @property
    def connections(self) -> list[Connection]:
        """Connections currently in the group."""
        return list(self._connections.values())

    def broadcast(self, envelope: Envelope, exclude: str | None = None) -> int:
        """Queue an event for every member connection; returns the count queued."""
        queued = 0
        for connection in list(self._connections.values()):
            if connection.id == exclude or not connection.receives_broadcasts:
                continue
            if connection.send(envelope):
                queued += 1

        logger.debug(
            "Broadcast %s to %s/%s connections in %s",
            envelope.type,
            queued,
            len(self._connections),
            self.name,
        )
        return queued

    def send_to(self, connection_id: str, envelope: Envelope) -> bool:
        """Queue an event for one connection."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return connection.send(envelope)

    async def close_all(self) -> None:
        """Close every connection (shutdown)."""
        for connection in list(self._connections.values()):
            await connection.close(code=1001)
        self._connections.clear()
