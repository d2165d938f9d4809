"""A single realtime connection with a non-blocking outbound queue."""

import asyncio
import uuid
from enum import Enum
from typing import Any, Protocol

from ..errors import TransportError
from ..logging_config import get_logger
from ..models import Envelope

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle of a chat connection."""

    CONNECTING = "connecting"
    JOINED = "joined"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


class IChannel(Protocol):
    """Bidirectional JSON transport (a FastAPI WebSocket satisfies this)."""

    async def send_json(self, data: Any) -> None:
        """Send one JSON frame."""
        ...

    async def receive_json(self) -> Any:
        """Receive one JSON frame."""
        ...

    async def close(self, code: int = 1000) -> None:
        """Close the transport."""
        ...


class Connection:
    """Wraps a channel; outbound frames go through a bounded queue.

    ``send`` never awaits, so a slow client only fills its own queue. When
    the queue is full the frame is dropped for this connection.
    """

    def __init__(
        self,
        channel: IChannel,
        identity: int,
        queue_size: int = 100,
        connection_id: str | None = None,
    ):
        self.id = connection_id or uuid.uuid4().hex
        self.identity = identity
        self.state = ConnectionState.CONNECTING
        self.is_typing = False
        self._channel = channel
        self._queue: asyncio.Queue[Envelope] = asyncio.Queue(maxsize=queue_size)
        self._writer: asyncio.Task | None = None
        self.dropped = 0

    @property
    def receives_broadcasts(self) -> bool:
        """Joined or active connections belong to the broadcast group."""
        return self.state in (ConnectionState.JOINED, ConnectionState.ACTIVE)

    def start(self) -> None:
        """Start the writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, envelope: Envelope) -> bool:
        """Queue a frame without blocking. Returns False if it was dropped."""
        if self.state == ConnectionState.DISCONNECTED:
            return False
        try:
            self._queue.put_nowait(envelope)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Outbound queue full, dropping %s for connection %s",
                envelope.type,
                self.id,
            )
            return False
        return True

    async def receive(self) -> Any:
        """Receive the next raw frame from the channel."""
        return await self._channel.receive_json()

    async def flush(self, timeout: float = 1.0) -> None:
        """Wait until queued frames have been written."""
        if self._writer is None or self._writer.done():
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out flushing connection %s", self.id)

    async def close(self, code: int = 1000) -> None:
        """Stop the writer and close the channel."""
        self.state = ConnectionState.DISCONNECTED
        if self._writer:
            self._writer.cancel()
            await asyncio.gather(self._writer, return_exceptions=True)
            self._writer = None
        try:
            await self._channel.close(code=code)
        except Exception as e:
            # Already closed by the peer
            logger.debug("Channel close for %s: %s", self.id, e)

    async def _drain(self) -> None:
        """Write queued frames to the channel until cancelled or broken."""
        while True:
            envelope = await self._queue.get()
            try:
                await self._channel.send_json(envelope.to_dict())
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = TransportError(f"send to {self.id} failed: {e}")
                logger.warning("%s", error)
                self.state = ConnectionState.DISCONNECTED
                self._queue.task_done()
                self._discard_pending()
                return
            self._queue.task_done()

    def _discard_pending(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
