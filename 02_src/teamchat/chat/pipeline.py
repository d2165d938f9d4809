"""Message delivery pipeline: persist, enrich, broadcast, acknowledge."""

import asyncio
from typing import Awaitable, Protocol, TypeVar

from ..errors import (
    AuthorizationError,
    ChatError,
    NotFoundError,
    PersistenceError,
    TransportError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import (
    EnrichedMessage,
    Envelope,
    Message,
    NewMessage,
    ServerEvent,
    message_payload,
    server_event,
)
from ..realtime import IBroadcastHub
from ..storage import IStorage
from ..tracker import ITracker
from .uploads import IBlobStore

logger = get_logger(__name__)

T = TypeVar("T")


class IMessagePipeline(Protocol):
    """Write-then-broadcast for every mutating chat action."""

    async def send(
        self, sender_id: int, body: str, reply_to: int | None = None
    ) -> EnrichedMessage:
        """Persist a new message and broadcast new-message."""
        ...

    async def send_file(
        self,
        sender_id: int,
        filename: str,
        data: bytes,
        body: str = "",
        reply_to: int | None = None,
    ) -> EnrichedMessage:
        """Store a file, persist a message pointing at it, broadcast new-message."""
        ...

    async def edit(
        self, message_id: int, new_body: str, requesting_sender: int
    ) -> EnrichedMessage:
        """Edit a message owned by requesting_sender and broadcast message-edited."""
        ...

    async def delete(self, message_id: int, requesting_sender: int) -> None:
        """Delete a message owned by requesting_sender and broadcast message-deleted."""
        ...

    async def mark_read(self, message_id: int, member_id: int) -> Message:
        """Record a read receipt and broadcast message-read."""
        ...


class MessagePipeline:
    """Persists chat actions, then notifies the broadcast group.

    The store write is the strong step: if it fails or times out nothing is
    broadcast. The broadcast is best effort: failures are logged and the
    caller still gets the persisted result.
    """

    def __init__(
        self,
        storage: IStorage,
        hub: IBroadcastHub | None,
        tracker: ITracker,
        blob_store: IBlobStore | None = None,
        persist_timeout: float | None = 10.0,
    ):
        self._storage = storage
        self._hub = hub
        self._tracker = tracker
        self._blob_store = blob_store
        self._persist_timeout = persist_timeout

    async def send(
        self, sender_id: int, body: str, reply_to: int | None = None
    ) -> EnrichedMessage:
        """Persist a new message and broadcast new-message."""
        draft = NewMessage(sender_id=sender_id, body=body or "", reply_to=reply_to)
        if not draft.has_content():
            raise ValidationError("Message is required")

        message = await self._persist(self._storage.append(draft))
        enriched = await self._enrich(message)
        await self._notify(
            server_event(ServerEvent.NEW_MESSAGE, message_payload(enriched))
        )

        await self._tracker.track(
            event_type="message_sent",
            actor="message_pipeline",
            data={
                "message_id": message.id,
                "sender_id": sender_id,
                "reply_to": reply_to,
            },
        )
        return enriched

    async def send_file(
        self,
        sender_id: int,
        filename: str,
        data: bytes,
        body: str = "",
        reply_to: int | None = None,
    ) -> EnrichedMessage:
        """Store a file, persist a message pointing at it, broadcast new-message."""
        if self._blob_store is None:
            raise ValidationError("File uploads are not enabled")

        attachment = await self._blob_store.put(filename, data)
        draft = NewMessage(
            sender_id=sender_id,
            body=body or f"Sent a file: {filename}",
            reply_to=reply_to,
            attachment=attachment,
        )

        try:
            message = await self._persist(self._storage.append(draft))
        except ChatError:
            await self._blob_store.discard(attachment)
            raise

        enriched = await self._enrich(message)
        await self._notify(
            server_event(ServerEvent.NEW_MESSAGE, message_payload(enriched))
        )

        await self._tracker.track(
            event_type="message_sent",
            actor="message_pipeline",
            data={
                "message_id": message.id,
                "sender_id": sender_id,
                "file_name": attachment.name,
                "file_size": attachment.size,
            },
        )
        return enriched

    async def edit(
        self, message_id: int, new_body: str, requesting_sender: int
    ) -> EnrichedMessage:
        """Edit a message owned by requesting_sender and broadcast message-edited."""
        if not new_body or not new_body.strip():
            raise ValidationError("Message content is required")

        message = await self._persist(
            self._storage.edit_message(message_id, new_body, requesting_sender)
        )
        enriched = await self._enrich(message)
        await self._notify(
            server_event(ServerEvent.MESSAGE_EDITED, message_payload(enriched))
        )

        await self._tracker.track(
            event_type="message_edited",
            actor="message_pipeline",
            data={"message_id": message_id, "sender_id": requesting_sender},
        )
        return enriched

    async def delete(self, message_id: int, requesting_sender: int) -> None:
        """Delete a message owned by requesting_sender and broadcast message-deleted."""
        deleted = await self._persist(
            self._storage.delete_message(message_id, requesting_sender)
        )
        if not deleted:
            existing = await self._persist(self._storage.get_message(message_id))
            if existing is None:
                raise NotFoundError(f"Message {message_id} not found")
            raise AuthorizationError("Only the original sender may delete a message")

        await self._notify(
            server_event(ServerEvent.MESSAGE_DELETED, {"messageId": message_id})
        )

        await self._tracker.track(
            event_type="message_deleted",
            actor="message_pipeline",
            data={"message_id": message_id, "sender_id": requesting_sender},
        )

    async def mark_read(self, message_id: int, member_id: int) -> Message:
        """Record a read receipt and broadcast message-read."""
        message = await self._persist(self._storage.mark_read(message_id, member_id))
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")

        await self._notify(
            server_event(
                ServerEvent.MESSAGE_READ,
                {"messageId": message_id, "userId": member_id},
            )
        )

        await self._tracker.track(
            event_type="message_read",
            actor="message_pipeline",
            data={"message_id": message_id, "member_id": member_id},
        )
        return message

    async def _persist(self, operation: Awaitable[T]) -> T:
        """Await a store call, bounding it by the persistence timeout."""
        try:
            if self._persist_timeout:
                return await asyncio.wait_for(operation, self._persist_timeout)
            return await operation
        except asyncio.TimeoutError as e:
            logger.error("Message store timed out after %ss", self._persist_timeout)
            raise PersistenceError("Message store timed out") from e
        except ChatError:
            raise
        except Exception as e:
            logger.error("Message store failed: %s", e, exc_info=True)
            raise PersistenceError(str(e)) from e

    async def _enrich(self, message: Message) -> EnrichedMessage:
        """Attach sender name/role for recipients without the profile."""
        try:
            sender = await self._storage.get_member(message.sender_id)
        except ChatError as e:
            logger.warning(
                "Sending message %s without sender profile: %s", message.id, e
            )
            sender = None
        return EnrichedMessage.from_message(message, sender)

    async def _notify(self, envelope: Envelope) -> bool:
        """Best-effort broadcast; never raises."""
        if self._hub is None:
            return False
        try:
            queued = self._hub.broadcast(envelope)
            logger.debug(
                "Queued for %s connections",
                queued,
                extra={"event": envelope.type, "message_id": envelope.data.get("id")},
            )
            return True
        except Exception as e:
            error = TransportError(f"broadcast of {envelope.type} failed: {e}")
            logger.warning("%s", error, exc_info=True)
            await self._tracker.track(
                event_type="broadcast_failed",
                actor="message_pipeline",
                data={"event": envelope.type, "error": str(e)},
            )
            return False
