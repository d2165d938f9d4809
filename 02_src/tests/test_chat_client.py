"""Tests for ChatClient against a mocked HTTP API and fake channel."""

import json

import httpx
import pytest
from websockets.exceptions import InvalidHandshake

from client import ChatClient
from teamchat.errors import (
    AuthorizationError,
    PersistenceError,
    TransportError,
    ValidationError,
)
from teamchat.models import DeliveryStatus

from conftest import FakeChannel, wire_message as payload


class FakeApi:
    """Records requests and answers from a small in-memory store."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.history: list[dict] = []
        self.next_id = 1
        self.fail_with: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"detail": "nope"})

        path = request.url.path
        if request.method == "GET" and path == "/api/team/chat":
            return httpx.Response(200, json=self.history)
        if request.method == "GET" and path == "/api/team/chat/search":
            query = request.url.params["q"]
            hits = [m for m in reversed(self.history) if query in m["message"]]
            return httpx.Response(200, json=hits)
        if request.method == "POST" and path == "/api/team/chat":
            body = json.loads(request.content)
            stored = payload(self.next_id, 1, body["message"], replyTo=body["replyTo"])
            self.next_id += 1
            self.history.append(stored)
            return httpx.Response(201, json=stored)
        if request.method == "PUT" and path.endswith("/read"):
            return httpx.Response(200, json=self.history[0])
        if request.method == "PUT":
            body = json.loads(request.content)
            edited = dict(self.history[0], message=body["message"], isEdited=True)
            return httpx.Response(200, json=edited)
        if request.method == "DELETE":
            return httpx.Response(200, json={"message": "Message deleted successfully"})
        return httpx.Response(404, json={"detail": "not found"})


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def channels():
    return []


@pytest.fixture
def chat_client(api, channels):
    async def connect(url: str) -> FakeChannel:
        channel = FakeChannel()
        channel.url = url
        channels.append(channel)
        return channel

    http = httpx.AsyncClient(
        transport=httpx.MockTransport(api.handler), base_url="http://chat.test"
    )
    return ChatClient(
        "http://chat.test",
        token="tok",
        member_id=1,
        http=http,
        connect=connect,
        typing_timeout=0.05,
        reconnect_delay=0.01,
    )


class TestHttpActions:
    """Tests for REST-backed actions."""

    @pytest.mark.asyncio
    async def test_requests_carry_bearer_token(self, chat_client, api):
        await chat_client.load_history()
        assert api.requests[0].headers["Authorization"] == "Bearer tok"
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_send_confirms_pending(self, chat_client):
        entry = await chat_client.send("hello")

        assert entry.key == 1
        assert entry.status == DeliveryStatus.SENT
        assert [e.key for e in chat_client.state.messages] == [1]
        assert chat_client.draft == ""
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_failed_send_restores_draft(self, chat_client, api):
        api.fail_with = 503

        with pytest.raises(PersistenceError):
            await chat_client.send("try later")

        assert chat_client.draft == "try later"
        assert chat_client.state.messages == []
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_validation_error_mapped(self, chat_client, api):
        api.fail_with = 400
        with pytest.raises(ValidationError):
            await chat_client.send("")
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_failed_edit_keeps_message(self, chat_client, api):
        await chat_client.send("original")
        api.fail_with = 403

        with pytest.raises(AuthorizationError):
            await chat_client.edit(1, "changed")

        assert chat_client.state.get(1).body == "original"
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_edit_and_delete(self, chat_client):
        await chat_client.send("original")

        edited = await chat_client.edit(1, "changed")
        assert edited.body == "changed"
        assert edited.is_edited

        await chat_client.delete(1)
        assert chat_client.state.get(1) is None
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_search(self, chat_client):
        await chat_client.send("launch plan")
        await chat_client.send("lunch")

        hits = await chat_client.search("launch")

        assert [h["message"] for h in hits] == ["launch plan"]
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        http = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://chat.test"
        )
        client = ChatClient("http://chat.test", token="tok", member_id=1, http=http)

        with pytest.raises(TransportError):
            await client.load_history()
        await client.aclose()


class TestRealtime:
    """Tests for the realtime channel."""

    @pytest.mark.asyncio
    async def test_realtime_url(self, chat_client):
        assert chat_client.realtime_url == "ws://chat.test/ws/chat?token=tok"
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_connect_joins_and_reloads(self, chat_client, api, channels):
        api.history.append(payload(1, 2, "while you were away"))

        await chat_client.connect()

        assert channels[0].sent == [{"type": "join", "data": {"userId": 1}}]
        assert [e.body for e in chat_client.state.messages] == ["while you were away"]
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_reconnect_reloads_instead_of_replaying(
        self, chat_client, api, channels
    ):
        await chat_client.connect()
        api.history.append(payload(1, 2, "missed"))

        await chat_client.connect()

        assert len(channels) == 2
        assert channels[0].closed_with == 1000
        assert [e.body for e in chat_client.state.messages] == ["missed"]
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_listen_applies_events_until_closed(self, chat_client, channels):
        await chat_client.connect()
        channel = channels[0]
        channel.feed({"type": "online-members", "data": {"userIds": [2]}})
        channel.feed({"type": "new-message", "data": payload(7, 2, "hey")})
        channel.feed(ConnectionResetError("gone"))

        with pytest.raises(TransportError):
            await chat_client.listen()

        assert chat_client.state.online == {1, 2}
        assert chat_client.state.status_of(7) == DeliveryStatus.DELIVERED
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_keystrokes_send_typing(self, chat_client, channels):
        await chat_client.connect()

        await chat_client.keystroke()
        await chat_client.keystroke()
        await chat_client.send("done typing")

        typing = [f["data"]["isTyping"] for f in channels[0].sent if f["type"] == "typing"]
        assert typing == [True, False]
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_listen_skips_malformed_frames(self, chat_client, channels):
        await chat_client.connect()
        channel = channels[0]
        channel.feed(ValueError("Expecting value: line 1 column 1 (char 0)"))
        channel.feed({"type": "new-message", "data": payload(8, 2, "after junk")})
        channel.feed(ConnectionResetError("gone"))

        with pytest.raises(TransportError):
            await chat_client.listen()

        assert [e.body for e in chat_client.state.messages] == ["after junk"]
        await chat_client.aclose()


def _client_with(api, connect) -> ChatClient:
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(api.handler), base_url="http://chat.test"
    )
    return ChatClient(
        "http://chat.test",
        token="tok",
        member_id=1,
        http=http,
        connect=connect,
        reconnect_delay=0.01,
    )


class TestRunLoop:
    """Tests for reconnecting."""

    @pytest.mark.asyncio
    async def test_rejected_token_stops_reconnecting(self, api):
        attempts = []

        async def connect(url: str) -> FakeChannel:
            attempts.append(url)
            raise AuthorizationError("Realtime handshake rejected with HTTP 403")

        chat_client = _client_with(api, connect)

        with pytest.raises(AuthorizationError):
            await chat_client.run()

        assert len(attempts) == 1
        await chat_client.aclose()

    @pytest.mark.asyncio
    async def test_handshake_failure_is_retried(self, api):
        attempts = []

        async def connect(url: str) -> FakeChannel:
            attempts.append(url)
            if len(attempts) == 1:
                raise InvalidHandshake("connection reset during handshake")
            chat_client.stop()
            channel = FakeChannel()
            channel.feed(ConnectionResetError("gone"))
            return channel

        chat_client = _client_with(api, connect)

        await chat_client.run()

        assert len(attempts) == 2
        await chat_client.aclose()
