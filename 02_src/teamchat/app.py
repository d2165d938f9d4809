"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .chat import IBlobStore, LocalBlobStore, MessagePipeline
from .config import ChatSettings, resolve_db_path
from .logging_config import get_logger
from .presence import IPresenceRegistry, PresenceRegistry
from .realtime import BroadcastHub, ChatGateway
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear stored data (development)."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        settings: ChatSettings | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self.settings = settings or ChatSettings.from_env()

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._presence: IPresenceRegistry | None = None
        self._hub: BroadcastHub | None = None
        self._blob_store: IBlobStore | None = None
        self._pipeline: MessagePipeline | None = None
        self._gateway: ChatGateway | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Presence registry and broadcast group (in-memory)
        self._presence = PresenceRegistry()
        self._hub = BroadcastHub()

        # 4. Blob store for attachments
        self._blob_store = LocalBlobStore(
            self.settings.upload_dir,
            max_bytes=self.settings.max_upload_bytes,
            allowed_extensions=self.settings.allowed_upload_extensions,
        )

        # 5. Delivery pipeline (Storage, hub, Tracker, blob store)
        self._pipeline = MessagePipeline(
            storage=self._storage,
            hub=self._hub,
            tracker=self._tracker,
            blob_store=self._blob_store,
            persist_timeout=self.settings.persist_timeout_seconds,
        )

        # 6. Realtime gateway (registry, hub, Storage, Tracker)
        self._gateway = ChatGateway(
            registry=self._presence,
            hub=self._hub,
            storage=self._storage,
            tracker=self._tracker,
            queue_size=self.settings.outbound_queue_size,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._hub:
            await self._hub.close_all()
            logger.info("Realtime connections closed")
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Clear stored data (development)."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def presence(self) -> IPresenceRegistry:
        """Get presence registry."""
        if not self._presence:
            raise RuntimeError("Application not started")
        return self._presence

    @property
    def hub(self) -> BroadcastHub:
        """Get broadcast hub."""
        if not self._hub:
            raise RuntimeError("Application not started")
        return self._hub

    @property
    def blob_store(self) -> IBlobStore:
        """Get attachment blob store."""
        if not self._blob_store:
            raise RuntimeError("Application not started")
        return self._blob_store

    @property
    def pipeline(self) -> MessagePipeline:
        """Get message delivery pipeline."""
        if not self._pipeline:
            raise RuntimeError("Application not started")
        return self._pipeline

    @property
    def gateway(self) -> ChatGateway:
        """Get realtime gateway."""
        if not self._gateway:
            raise RuntimeError("Application not started")
        return self._gateway
