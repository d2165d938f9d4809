"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class TeamMember:
    """A team member who can take part in the team chat."""

    id: int
    name: str
    role: str  # "ceo", "marketing", "social_media", "admin"
    is_active: bool = True


@dataclass
class Attachment:
    """File metadata attached to a message; the bytes live in the blob store."""

    url: str
    name: str
    size: int


@dataclass
class NewMessage:
    """A send request before it has been persisted."""

    sender_id: int
    body: str
    reply_to: int | None = None
    attachment: Attachment | None = None

    def has_content(self) -> bool:
        """True when there is body text or an attachment."""
        return bool(self.body and self.body.strip()) or self.attachment is not None


@dataclass
class Message:
    """A persisted team chat message."""

    id: int
    sender_id: int
    body: str
    created_at: datetime
    updated_at: datetime
    reply_to: int | None = None
    attachment: Attachment | None = None
    is_edited: bool = False


@dataclass
class EnrichedMessage(Message):
    """A message carrying the sender's presentation data."""

    sender_name: str | None = None
    sender_role: str | None = None

    @classmethod
    def from_message(
        cls, message: Message, sender: TeamMember | None
    ) -> "EnrichedMessage":
        """Attach sender name and role to a stored message."""
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            body=message.body,
            created_at=message.created_at,
            updated_at=message.updated_at,
            reply_to=message.reply_to,
            attachment=message.attachment,
            is_edited=message.is_edited,
            sender_name=sender.name if sender else None,
            sender_role=sender.role if sender else None,
        )


@dataclass
class ReadReceipt:
    """A member having read a message."""

    message_id: int
    member_id: int
    read_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
