"""Client-side chat state: optimistic sends, echo dedupe, delivery status."""

import itertools
from dataclasses import dataclass, field, replace
from typing import Any

from teamchat.logging_config import get_logger
from teamchat.models import DeliveryStatus, ServerEvent

from .typing_indicator import TypingTracker

logger = get_logger(__name__)


@dataclass
class ChatEntry:
    """A message as displayed by one client."""

    key: int | str  # store id, or a local "pending-N" key before the ack
    sender_id: int
    body: str
    status: DeliveryStatus
    created_at: str = ""
    reply_to: int | None = None
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    is_edited: bool = False
    sender_name: str | None = None
    sender_role: str | None = None

    @property
    def pending(self) -> bool:
        """True until the store has acknowledged the message."""
        return isinstance(self.key, str)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], status: DeliveryStatus) -> "ChatEntry":
        """Build from the wire representation of a stored message."""
        return cls(
            key=int(payload["id"]),
            sender_id=int(payload["senderId"]),
            body=payload.get("message") or "",
            status=status,
            created_at=str(payload.get("createdAt") or ""),
            reply_to=payload.get("replyTo"),
            file_url=payload.get("fileUrl"),
            file_name=payload.get("fileName"),
            file_size=payload.get("fileSize"),
            is_edited=bool(payload.get("isEdited")),
            sender_name=payload.get("senderName"),
            sender_role=payload.get("senderRole"),
        )


@dataclass
class ChatState:
    """Everything one client displays, reconciled by store id."""

    self_id: int
    typing_timeout: float = 1.0
    _entries: dict[int | str, ChatEntry] = field(default_factory=dict)
    _online: set[int] = field(default_factory=set)
    _pending_ids: Any = field(default_factory=lambda: itertools.count(1))

    def __post_init__(self):
        self.typing = TypingTracker(timeout=self.typing_timeout)

    # Views
    @property
    def messages(self) -> list[ChatEntry]:
        """Confirmed messages by (created_at, id), then pending ones in send order."""
        confirmed = [e for e in self._entries.values() if not e.pending]
        pending = [e for e in self._entries.values() if e.pending]
        confirmed.sort(key=lambda e: (e.created_at, e.key))
        return confirmed + pending

    @property
    def online(self) -> frozenset[int]:
        """Identities known to be online."""
        return frozenset(self._online)

    def get(self, key: int | str) -> ChatEntry | None:
        """Look up a displayed message."""
        return self._entries.get(key)

    def status_of(self, key: int | str) -> DeliveryStatus | None:
        """Delivery status of a displayed message."""
        entry = self._entries.get(key)
        return entry.status if entry else None

    # History
    def seed(self, payloads: list[dict[str, Any]]) -> None:
        """Replace confirmed messages with a freshly loaded list.

        Pending sends survive the reload. Statuses already known locally are
        kept if they are further along than the default.
        """
        previous = {k: e for k, e in self._entries.items() if not e.pending}
        pending = {k: e for k, e in self._entries.items() if e.pending}

        self._entries = {}
        for payload in payloads:
            entry = ChatEntry.from_payload(payload, self._default_status(payload))
            known = previous.get(entry.key)
            if known is not None:
                entry.status = entry.status.advance(known.status)
            self._entries[entry.key] = entry
        self._entries.update(pending)

    # Optimistic sends
    def add_pending(self, body: str, reply_to: int | None = None) -> str:
        """Show a message immediately; returns its local key."""
        key = f"pending-{next(self._pending_ids)}"
        self._entries[key] = ChatEntry(
            key=key,
            sender_id=self.self_id,
            body=body,
            status=DeliveryStatus.SENDING,
            reply_to=reply_to,
        )
        return key

    def confirm(self, key: str, payload: dict[str, Any]) -> ChatEntry:
        """Swap a pending entry for the acknowledged one."""
        self._entries.pop(key, None)
        return self._upsert(payload, DeliveryStatus.SENT)

    def rollback(self, key: str) -> str:
        """Drop a failed pending entry; returns its text for the draft input."""
        entry = self._entries.pop(key, None)
        return entry.body if entry else ""

    # Local results of edit/delete acknowledgements
    def apply_edit(self, payload: dict[str, Any]) -> ChatEntry | None:
        """Apply an edited message if it is displayed."""
        key = int(payload["id"])
        entry = self._entries.get(key)
        if entry is None:
            return None
        updated = ChatEntry.from_payload(payload, entry.status)
        self._entries[key] = updated
        return updated

    def remove(self, message_id: int) -> None:
        """Drop a deleted message."""
        self._entries.pop(int(message_id), None)

    # Realtime events
    def apply_event(self, event: dict[str, Any]) -> None:
        """Apply one server event frame."""
        event_type = event.get("type")
        data = event.get("data") or {}

        if event_type == ServerEvent.NEW_MESSAGE.value:
            self._upsert(data, self._default_status(data))
            self.typing.clear(int(data["senderId"]))
        elif event_type == ServerEvent.MESSAGE_EDITED.value:
            self.apply_edit(data)
        elif event_type == ServerEvent.MESSAGE_DELETED.value:
            self.remove(data["messageId"])
        elif event_type == ServerEvent.MESSAGE_READ.value:
            self._apply_read(int(data["messageId"]), int(data["userId"]))
        elif event_type == ServerEvent.USER_TYPING.value:
            user_id = int(data["userId"])
            if user_id != self.self_id:
                self.typing.apply(
                    user_id, data.get("userName") or str(user_id), bool(data.get("isTyping"))
                )
        elif event_type == ServerEvent.MEMBER_ONLINE.value:
            self._online.add(int(data["userId"]))
        elif event_type == ServerEvent.MEMBER_OFFLINE.value:
            user_id = int(data["userId"])
            self._online.discard(user_id)
            self.typing.clear(user_id)
        elif event_type == ServerEvent.ONLINE_MEMBERS.value:
            self._online = {int(uid) for uid in data.get("userIds", [])}
            self._online.add(self.self_id)
        elif event_type == ServerEvent.ERROR.value:
            logger.warning("Server error event: %s", data)

    def _apply_read(self, message_id: int, reader_id: int) -> None:
        entry = self._entries.get(message_id)
        if entry is None or reader_id == self.self_id:
            return
        if entry.sender_id == self.self_id:
            entry.status = entry.status.advance(DeliveryStatus.READ)

    def _upsert(self, payload: dict[str, Any], status: DeliveryStatus) -> ChatEntry:
        """Insert or update by store id; an existing entry is never duplicated."""
        incoming = ChatEntry.from_payload(payload, status)
        existing = self._entries.get(incoming.key)
        if existing is not None:
            incoming = replace(incoming, status=existing.status.advance(status))
        self._entries[incoming.key] = incoming
        return incoming

    def _default_status(self, payload: dict[str, Any]) -> DeliveryStatus:
        if int(payload["senderId"]) == self.self_id:
            return DeliveryStatus.SENT
        return DeliveryStatus.DELIVERED
