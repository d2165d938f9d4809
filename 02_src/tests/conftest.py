"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi import WebSocketDisconnect  # noqa: E402

from teamchat.config import ChatSettings  # noqa: E402
from teamchat.models import TeamMember  # noqa: E402


ALICE = TeamMember(id=1, name="Alice", role="ceo")
BOB = TeamMember(id=2, name="Bob", role="marketing")
CAROL = TeamMember(id=3, name="Carol", role="admin")


class FakeChannel:
    """In-memory stand-in for a WebSocket."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed_with: int | None = None
        self.fail_sends = False

    async def send_json(self, data: Any) -> None:
        if self.fail_sends:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def receive_json(self) -> Any:
        item = await self.inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def feed(self, frame: Any) -> None:
        self.inbox.put_nowait(frame)

    def hang_up(self) -> None:
        self.inbox.put_nowait(WebSocketDisconnect(code=1000))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [frame["data"] for frame in self.sent if frame["type"] == event_type]

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


@pytest.fixture
def settings(tmp_path):
    """Settings pointing uploads at a temporary directory."""
    return ChatSettings(
        jwt_secret="test-secret",
        upload_dir=tmp_path / "uploads",
        max_upload_bytes=1024,
        persist_timeout_seconds=2.0,
    )


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from teamchat.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest_asyncio.fixture
async def members(storage):
    """Seed the three team members."""
    for member in (ALICE, BOB, CAROL):
        await storage.save_member(member)
    return {"alice": ALICE, "bob": BOB, "carol": CAROL}


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from teamchat.tracker import Tracker

    return Tracker(storage)


@pytest.fixture
def registry():
    """Create an empty presence registry."""
    from teamchat.presence import PresenceRegistry

    return PresenceRegistry()


@pytest.fixture
def hub():
    """Create an empty broadcast hub."""
    from teamchat.realtime import BroadcastHub

    return BroadcastHub()


@pytest.fixture
def blob_store(settings):
    """Create a blob store in a temporary directory."""
    from teamchat.chat import LocalBlobStore

    return LocalBlobStore(
        settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
        allowed_extensions=settings.allowed_upload_extensions,
    )


@pytest.fixture
def pipeline(storage, hub, tracker, blob_store):
    """Create the delivery pipeline."""
    from teamchat.chat import MessagePipeline

    return MessagePipeline(
        storage=storage,
        hub=hub,
        tracker=tracker,
        blob_store=blob_store,
        persist_timeout=2.0,
    )


@pytest.fixture
def gateway(registry, hub, storage, tracker):
    """Create the realtime gateway."""
    from teamchat.realtime import ChatGateway

    return ChatGateway(registry=registry, hub=hub, storage=storage, tracker=tracker)


@pytest.fixture
def channel_factory():
    """Create fake channels on demand."""
    return FakeChannel


@pytest_asyncio.fixture
async def joined(gateway):
    """Open and join a session; returns (session, channel)."""
    sessions = []

    async def _join(member_id: int):
        channel = FakeChannel()
        session = gateway.open_session(channel, member_id)
        session.connection.start()
        await session.handle({"type": "join", "data": {"userId": member_id}})
        await session.connection.flush()
        sessions.append(session)
        return session, channel

    yield _join

    for session in sessions:
        await session.disconnect()


async def flush_all(*sessions) -> None:
    """Let every session's writer catch up."""
    for session in sessions:
        await session.connection.flush()


def wire_message(message_id: int, sender_id: int, body: str = "hi", **extra) -> dict:
    """A stored message as it appears on the wire."""
    data = {
        "id": message_id,
        "senderId": sender_id,
        "message": body,
        "replyTo": None,
        "fileUrl": None,
        "fileName": None,
        "fileSize": None,
        "isEdited": False,
        "createdAt": f"2024-01-15T10:00:{message_id:02d}+00:00",
        "updatedAt": f"2024-01-15T10:00:{message_id:02d}+00:00",
    }
    data.update(extra)
    return data
