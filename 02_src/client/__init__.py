"""Team chat client."""

from .client import ChatClient, WebSocketChannel, open_websocket
from .state import ChatEntry, ChatState
from .typing_indicator import PeerTyping, TypingDebouncer, TypingTracker

__all__ = [
    "ChatClient",
    "WebSocketChannel",
    "open_websocket",
    "ChatEntry",
    "ChatState",
    "PeerTyping",
    "TypingDebouncer",
    "TypingTracker",
]
