"""Chat session protocol: join, typing, presence, disconnect."""

import asyncio
from typing import Any

from fastapi import WebSocketDisconnect

from ..errors import ChatError
from ..logging_config import get_logger
from ..models import ClientEvent, Envelope, ServerEvent, server_event
from ..presence import IPresenceRegistry
from ..storage import IStorage
from ..tracker import ITracker
from .connection import Connection, ConnectionState, IChannel
from .hub import IBroadcastHub

logger = get_logger(__name__)


class ChatSession:
    """Drives one connection through connecting -> active -> disconnected."""

    def __init__(
        self,
        connection: Connection,
        registry: IPresenceRegistry,
        hub: IBroadcastHub,
        storage: IStorage,
        tracker: ITracker,
    ):
        self._connection = connection
        self._registry = registry
        self._hub = hub
        self._storage = storage
        self._tracker = tracker
        self._display_name: str | None = None
        self._closed = False

    @property
    def connection(self) -> Connection:
        """The connection this session drives."""
        return self._connection

    @property
    def state(self) -> ConnectionState:
        """Current protocol state."""
        return self._connection.state

    async def run(self) -> None:
        """Receive frames until the peer goes away, then leave presence."""
        self._connection.start()
        try:
            while self._connection.state != ConnectionState.DISCONNECTED:
                try:
                    raw = await self._connection.receive()
                except WebSocketDisconnect:
                    break
                except ValueError:
                    self._send_error("bad_frame", "Frame is not valid JSON")
                    continue
                await self.handle(raw)
        except Exception as e:
            logger.warning(
                "Connection %s dropped: %s", self._connection.id, e, exc_info=True
            )
        finally:
            # Presence must be released even if the handler task is cancelled
            await asyncio.shield(self.disconnect())

    async def handle(self, raw: Any) -> None:
        """Dispatch one inbound frame."""
        try:
            envelope = Envelope.from_dict(raw)
        except ValueError as e:
            self._send_error("bad_frame", str(e))
            return

        if envelope.type == ClientEvent.PING.value:
            self._connection.send(server_event(ServerEvent.PONG))
        elif envelope.type == ClientEvent.JOIN.value:
            await self._handle_join(envelope.data)
        elif envelope.type == ClientEvent.TYPING.value:
            self._handle_typing(envelope.data)
        else:
            self._send_error("unknown_event", f"Unknown event '{envelope.type}'")

    async def _handle_join(self, data: dict[str, Any]) -> None:
        if self._connection.state != ConnectionState.CONNECTING:
            self._send_error("already_joined", "Connection has already joined")
            return

        raw_id = data.get("userId", data.get("value"))
        try:
            user_id = int(raw_id)
        except (TypeError, ValueError):
            self._send_error("bad_join", "join requires a numeric userId")
            return

        if user_id != self._connection.identity:
            self._send_error(
                "identity_mismatch", "userId does not match the session credential"
            )
            return

        try:
            member = await self._storage.get_member(user_id)
        except ChatError as e:
            logger.warning("Could not load profile for member %s: %s", user_id, e)
            member = None
        self._display_name = member.name if member else None

        self._connection.state = ConnectionState.JOINED
        self._hub.add(self._connection)
        change = await self._registry.join(user_id, self._connection.id)

        self._connection.send(
            server_event(
                ServerEvent.ONLINE_MEMBERS,
                {"userIds": sorted(change.others_online)},
            )
        )
        if change.transitioned:
            self._hub.broadcast(
                server_event(ServerEvent.MEMBER_ONLINE, {"userId": user_id}),
                exclude=self._connection.id,
            )

        self._connection.state = ConnectionState.ACTIVE
        logger.info(
            "Member %s joined",
            user_id,
            extra={"member_id": user_id, "connection_id": self._connection.id},
        )
        await self._tracker.track(
            event_type="member_joined",
            actor="chat_session",
            data={"user_id": user_id, "connection_id": self._connection.id},
        )

    def _handle_typing(self, data: dict[str, Any]) -> None:
        if self._connection.state != ConnectionState.ACTIVE:
            self._send_error("not_joined", "Join before sending chat events")
            return

        is_typing = bool(data.get("isTyping", data.get("value")))
        self._connection.is_typing = is_typing
        self._broadcast_typing(is_typing, data.get("displayName"))

    def _broadcast_typing(self, is_typing: bool, display_name: Any = None) -> None:
        user_name = self._display_name or display_name or str(self._connection.identity)
        self._hub.broadcast(
            server_event(
                ServerEvent.USER_TYPING,
                {
                    "userId": self._connection.identity,
                    "userName": user_name,
                    "isTyping": is_typing,
                },
            ),
            exclude=self._connection.id,
        )

    async def disconnect(self) -> None:
        """Leave the broadcast group and presence; idempotent."""
        if self._closed:
            return
        self._closed = True

        self._hub.remove(self._connection.id)
        was_typing = self._connection.is_typing
        self._connection.state = ConnectionState.DISCONNECTED
        self._connection.is_typing = False

        if was_typing:
            self._broadcast_typing(False)

        change = await self._registry.leave(self._connection.id)
        if change is not None:
            if change.transitioned:
                self._hub.broadcast(
                    server_event(
                        ServerEvent.MEMBER_OFFLINE, {"userId": change.identity}
                    )
                )
            await self._tracker.track(
                event_type="member_left",
                actor="chat_session",
                data={
                    "user_id": change.identity,
                    "connection_id": self._connection.id,
                    "went_offline": change.transitioned,
                },
            )

        await self._connection.close()
        logger.info(
            "Connection disconnected",
            extra={
                "member_id": self._connection.identity,
                "connection_id": self._connection.id,
            },
        )

    def _send_error(self, code: str, message: str) -> None:
        self._connection.send(
            server_event(ServerEvent.ERROR, {"code": code, "message": message})
        )


class ChatGateway:
    """Creates sessions for new realtime connections."""

    def __init__(
        self,
        registry: IPresenceRegistry,
        hub: IBroadcastHub,
        storage: IStorage,
        tracker: ITracker,
        queue_size: int = 100,
    ):
        self._registry = registry
        self._hub = hub
        self._storage = storage
        self._tracker = tracker
        self._queue_size = queue_size

    def open_session(self, channel: IChannel, identity: int) -> ChatSession:
        """Wrap an accepted channel in a new session (state: connecting)."""
        connection = Connection(channel, identity, queue_size=self._queue_size)
        return ChatSession(
            connection=connection,
            registry=self._registry,
            hub=self._hub,
            storage=self._storage,
            tracker=self._tracker,
        )
