"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single activity record for a chat action."""

    id: str
    event_type: str  # e.g. "message_sent", "member_joined"
    actor: str  # component that recorded the event
    data: dict
    timestamp: datetime
