"""Chat delivery module."""

from .pipeline import IMessagePipeline, MessagePipeline
from .uploads import IBlobStore, LocalBlobStore

__all__ = ["IMessagePipeline", "MessagePipeline", "IBlobStore", "LocalBlobStore"]
