"""Realtime channel module."""

from .connection import Connection, ConnectionState, IChannel
from .hub import TEAM_CHAT_GROUP, BroadcastHub, IBroadcastHub
from .session import ChatGateway, ChatSession

__all__ = [
    "Connection",
    "ConnectionState",
    "IChannel",
    "TEAM_CHAT_GROUP",
    "BroadcastHub",
    "IBroadcastHub",
    "ChatGateway",
    "ChatSession",
]
