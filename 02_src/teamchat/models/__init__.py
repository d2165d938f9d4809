"""Core data models for Team Chat."""

from .events import (
    ClientEvent,
    Envelope,
    ServerEvent,
    message_payload,
    server_event,
)
from .messages import (
    Attachment,
    EnrichedMessage,
    Message,
    NewMessage,
    ReadReceipt,
    TeamMember,
)
from .receipts import DeliveryStatus
from .tracing import TraceEvent

__all__ = [
    # Messages
    "TeamMember",
    "Attachment",
    "NewMessage",
    "Message",
    "EnrichedMessage",
    "ReadReceipt",
    # Delivery
    "DeliveryStatus",
    # Realtime
    "ClientEvent",
    "ServerEvent",
    "Envelope",
    "message_payload",
    "server_event",
    # Tracing
    "TraceEvent",
]
