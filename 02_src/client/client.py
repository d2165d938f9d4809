"""Team chat client: HTTP actions plus the realtime channel."""

import asyncio
import json
from typing import Any, Awaitable, Callable
from urllib.parse import urlencode

import httpx
import websockets
from websockets.exceptions import InvalidStatus, WebSocketException

from teamchat.errors import (
    AuthenticationError,
    AuthorizationError,
    ChatError,
    NotFoundError,
    PersistenceError,
    TransportError,
    ValidationError,
)
from teamchat.logging_config import get_logger
from teamchat.models import ClientEvent
from teamchat.realtime import IChannel

from .state import ChatEntry, ChatState
from .typing_indicator import TypingDebouncer

logger = get_logger(__name__)


ChannelFactory = Callable[[str], Awaitable[IChannel]]

_STATUS_ERRORS: dict[int, type[ChatError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
}


class WebSocketChannel:
    """Adapts a websockets connection to the JSON channel interface."""

    def __init__(self, websocket: Any):
        self._ws = websocket

    async def send_json(self, data: Any) -> None:
        await self._ws.send(json.dumps(data))

    async def receive_json(self) -> Any:
        return json.loads(await self._ws.recv())

    async def close(self, code: int = 1000) -> None:
        await self._ws.close(code=code)


async def open_websocket(url: str) -> IChannel:
    """Default channel factory; a refused handshake maps to a ChatError."""
    try:
        websocket = await websockets.connect(url)
    except InvalidStatus as e:
        status = e.response.status_code
        error_cls = _STATUS_ERRORS.get(status, TransportError)
        raise error_cls(f"Realtime handshake rejected with HTTP {status}") from e
    except WebSocketException as e:
        raise TransportError(f"Realtime handshake failed: {e}") from e
    return WebSocketChannel(websocket)


def _raise_for_response(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    error_cls = _STATUS_ERRORS.get(response.status_code)
    if error_cls is None:
        error_cls = PersistenceError if response.status_code >= 500 else ChatError
    raise error_cls(str(detail))


class ChatClient:
    """One member's view of the team chat.

    Sends are optimistic: the message is shown as ``sending`` right away and
    swapped for the stored one when the server acknowledges it. The realtime
    echo of the same message is merged by id.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        member_id: int,
        http: httpx.AsyncClient | None = None,
        connect: ChannelFactory = open_websocket,
        typing_timeout: float = 1.0,
        reconnect_delay: float = 1.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._http = http or httpx.AsyncClient(base_url=self._base_url, timeout=10.0)
        self._connect = connect
        self._reconnect_delay = reconnect_delay
        self._channel: IChannel | None = None
        self._running = False

        self.state = ChatState(self_id=member_id, typing_timeout=typing_timeout)
        self.draft = ""
        self._typing = TypingDebouncer(self._emit_typing, idle_timeout=typing_timeout)

    @property
    def member_id(self) -> int:
        return self.state.self_id

    @property
    def realtime_url(self) -> str:
        """WebSocket URL for the team chat channel."""
        ws_base = self._base_url.replace("https://", "wss://", 1).replace(
            "http://", "ws://", 1
        )
        return f"{ws_base}/ws/chat?{urlencode({'token': self._token})}"

    async def aclose(self) -> None:
        """Close the realtime channel and HTTP client."""
        self._running = False
        await self._typing.stop()
        await self._close_channel()
        await self._http.aclose()

    # HTTP actions
    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise TransportError(str(e)) from e
        _raise_for_response(response)
        return response.json()

    async def load_history(self, limit: int = 50) -> list[ChatEntry]:
        """Reload history from the store (used on every (re)connect)."""
        payloads = await self._request("GET", "/api/team/chat", params={"limit": limit})
        self.state.seed(payloads)
        return self.state.messages

    async def search(self, query: str, limit: int = 20) -> list[dict[str, Any]]:
        """Search messages, newest first."""
        return await self._request(
            "GET", "/api/team/chat/search", params={"q": query, "limit": limit}
        )

    async def send(self, text: str, reply_to: int | None = None) -> ChatEntry:
        """Send a message; on failure the text is restored to ``draft``."""
        key = self.state.add_pending(text, reply_to)
        self.draft = ""
        await self._typing.stop()
        try:
            payload = await self._request(
                "POST", "/api/team/chat", json={"message": text, "replyTo": reply_to}
            )
        except ChatError:
            self.draft = self.state.rollback(key)
            raise
        return self.state.confirm(key, payload)

    async def edit(self, message_id: int, text: str) -> ChatEntry | None:
        """Edit an own message; the displayed message is unchanged on failure."""
        payload = await self._request(
            "PUT", f"/api/team/chat/{message_id}", json={"message": text}
        )
        return self.state.apply_edit(payload)

    async def delete(self, message_id: int) -> None:
        """Delete an own message; the displayed message stays on failure."""
        await self._request("DELETE", f"/api/team/chat/{message_id}")
        self.state.remove(message_id)

    async def mark_read(self, message_id: int) -> None:
        """Send a read receipt."""
        await self._request("PUT", f"/api/team/chat/{message_id}/read")

    async def keystroke(self) -> None:
        """Feed a keystroke to the typing debouncer."""
        await self._typing.keystroke()

    # Realtime
    async def connect(self) -> None:
        """Open the channel, join, and reload history."""
        await self._close_channel()
        self._channel = await self._connect(self.realtime_url)
        await self._channel.send_json(
            {"type": ClientEvent.JOIN.value, "data": {"userId": self.member_id}}
        )
        await self.load_history()

    async def listen(self) -> None:
        """Apply server events until the channel closes."""
        if self._channel is None:
            raise TransportError("Realtime channel is not connected")
        while True:
            try:
                frame = await self._channel.receive_json()
            except (WebSocketException, ConnectionError) as e:
                raise TransportError(f"Realtime channel closed: {e}") from e
            except ValueError as e:
                logger.warning("Skipping malformed realtime frame: %s", e)
                continue
            self.state.apply_event(frame)

    async def run(self) -> None:
        """Stay connected; every reconnect is a fresh join plus a full reload.

        A rejected credential ends the loop, since retrying cannot succeed.
        """
        self._running = True
        while self._running:
            try:
                await self.connect()
                await self.listen()
            except asyncio.CancelledError:
                raise
            except (AuthenticationError, AuthorizationError) as e:
                logger.error("Realtime connection refused: %s", e)
                self._running = False
                raise
            except ChatError as e:
                logger.warning("Realtime connection lost: %s", e)
            except (OSError, WebSocketException) as e:
                logger.warning("Realtime connection failed: %s", e)
            if self._running:
                await asyncio.sleep(self._reconnect_delay)

    def stop(self) -> None:
        """Stop reconnecting after the current connection ends."""
        self._running = False

    async def _emit_typing(self, is_typing: bool) -> None:
        if self._channel is None:
            return
        await self._channel.send_json(
            {"type": ClientEvent.TYPING.value, "data": {"isTyping": is_typing}}
        )

    async def _close_channel(self) -> None:
        if self._channel is None:
            return
        channel, self._channel = self._channel, None
        try:
            await channel.close()
        except Exception as e:
            logger.debug("Closing realtime channel: %s", e)
