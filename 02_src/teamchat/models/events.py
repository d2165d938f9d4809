"""Realtime channel event models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .messages import EnrichedMessage, Message


class ClientEvent(str, Enum):
    """Events a client sends over the realtime channel."""

    JOIN = "join"
    TYPING = "typing"
    PING = "ping"


class ServerEvent(str, Enum):
    """Events the server pushes over the realtime channel."""

    NEW_MESSAGE = "new-message"
    MESSAGE_EDITED = "message-edited"
    MESSAGE_DELETED = "message-deleted"
    MESSAGE_READ = "message-read"
    USER_TYPING = "user-typing"
    MEMBER_ONLINE = "member-online"
    MEMBER_OFFLINE = "member-offline"
    ONLINE_MEMBERS = "online-members"
    PONG = "pong"
    ERROR = "error"


@dataclass
class Envelope:
    """A single realtime frame: {"type": ..., "data": {...}}."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON frame layout."""
        return {"type": self.type, "data": self.data}

    @classmethod
    def from_dict(cls, raw: Any) -> "Envelope":
        """Parse a received JSON frame, raising ValueError when malformed."""
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
            raise ValueError("frame must be an object with a string 'type'")
        data = raw.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            # join may carry a bare identity id
            data = {"value": data}
        return cls(type=raw["type"], data=data)


def message_payload(message: Message) -> dict[str, Any]:
    """Wire representation of a message, enriched when possible."""
    payload: dict[str, Any] = {
        "id": message.id,
        "senderId": message.sender_id,
        "message": message.body,
        "replyTo": message.reply_to,
        "fileUrl": message.attachment.url if message.attachment else None,
        "fileName": message.attachment.name if message.attachment else None,
        "fileSize": message.attachment.size if message.attachment else None,
        "isEdited": message.is_edited,
        "createdAt": message.created_at.isoformat(),
        "updatedAt": message.updated_at.isoformat(),
    }
    if isinstance(message, EnrichedMessage):
        payload["senderName"] = message.sender_name
        payload["senderRole"] = message.sender_role
    return payload


def server_event(event: ServerEvent, data: dict[str, Any] | None = None) -> Envelope:
    """Build an outbound envelope."""
    return Envelope(type=event.value, data=data or {})
