"""Team chat core."""

from .app import Application, IApplication
from .chat import IBlobStore, IMessagePipeline, LocalBlobStore, MessagePipeline
from .config import ChatSettings
from .errors import (
    AuthenticationError,
    AuthorizationError,
    ChatError,
    NotFoundError,
    PersistenceError,
    TransportError,
    ValidationError,
)
from .models import (
    Attachment,
    DeliveryStatus,
    EnrichedMessage,
    Envelope,
    Message,
    NewMessage,
    ReadReceipt,
    TeamMember,
    TraceEvent,
)
from .presence import IPresenceRegistry, PresenceChange, PresenceRegistry
from .realtime import BroadcastHub, ChatGateway, ChatSession, Connection
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "ChatSettings",
    # Errors
    "ChatError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "PersistenceError",
    "TransportError",
    # Models
    "TeamMember",
    "Attachment",
    "NewMessage",
    "Message",
    "EnrichedMessage",
    "ReadReceipt",
    "DeliveryStatus",
    "Envelope",
    "TraceEvent",
    # Components
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
    "IPresenceRegistry",
    "PresenceRegistry",
    "PresenceChange",
    "BroadcastHub",
    "Connection",
    "ChatSession",
    "ChatGateway",
    "IMessagePipeline",
    "MessagePipeline",
    "IBlobStore",
    "LocalBlobStore",
]
