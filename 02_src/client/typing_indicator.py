"""Typing indicator helpers: outgoing debounce and peer expiry."""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from teamchat.logging_config import get_logger

logger = get_logger(__name__)


TypingEmitter = Callable[[bool], Awaitable[None]]


class TypingDebouncer:
    """Emits typing(true) when a keystroke burst starts and typing(false) after idle.

    Every keystroke restarts the idle timer; sending a message stops typing
    immediately. While the burst lasts, typing(true) is repeated every
    ``idle_timeout / 2`` so peers with the same expiry keep the indicator.
    """

    def __init__(self, emit: TypingEmitter, idle_timeout: float = 1.0):
        self._emit = emit
        self._idle_timeout = idle_timeout
        self._typing = False
        self._timer: asyncio.Task | None = None
        self._heartbeat: asyncio.Task | None = None

    @property
    def is_typing(self) -> bool:
        """Whether typing(true) is currently in effect."""
        return self._typing

    async def keystroke(self) -> None:
        """Register a keystroke."""
        if not self._typing:
            self._typing = True
            await self._safe_emit(True)
            self._heartbeat = asyncio.create_task(self._keep_alive())
        self._restart_timer()

    async def stop(self) -> None:
        """Stop typing now (message sent or input cleared)."""
        self._cancel_timer()
        await self._end_burst()

    async def _end_burst(self) -> None:
        if self._heartbeat and not self._heartbeat.done():
            self._heartbeat.cancel()
        self._heartbeat = None
        if self._typing:
            self._typing = False
            await self._safe_emit(False)

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._expire())

    def _cancel_timer(self) -> None:
        if self._timer and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _expire(self) -> None:
        try:
            await asyncio.sleep(self._idle_timeout)
        except asyncio.CancelledError:
            return
        self._timer = None
        await self._end_burst()

    async def _keep_alive(self) -> None:
        try:
            while self._typing:
                await asyncio.sleep(self._idle_timeout / 2)
                if self._typing:
                    await self._safe_emit(True)
        except asyncio.CancelledError:
            return

    async def _safe_emit(self, is_typing: bool) -> None:
        try:
            await self._emit(is_typing)
        except Exception as e:
            # Typing is ephemeral; a lost frame only delays the peer's expiry
            logger.warning("Could not send typing(%s): %s", is_typing, e)


@dataclass
class PeerTyping:
    """A peer currently shown as typing."""

    user_id: int
    user_name: str
    expires_at: float


class TypingTracker:
    """Peers shown as typing; entries expire without a refresh."""

    def __init__(self, timeout: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self._timeout = timeout
        self._clock = clock
        self._peers: dict[int, PeerTyping] = {}

    def apply(self, user_id: int, user_name: str, is_typing: bool) -> None:
        """Apply a user-typing event."""
        if is_typing:
            self._peers[user_id] = PeerTyping(
                user_id=user_id,
                user_name=user_name,
                expires_at=self._clock() + self._timeout,
            )
        else:
            self._peers.pop(user_id, None)

    def clear(self, user_id: int) -> None:
        """Forget a peer (went offline or sent a message)."""
        self._peers.pop(user_id, None)

    def active(self) -> list[PeerTyping]:
        """Peers still typing; expired entries are dropped."""
        now = self._clock()
        expired = [uid for uid, peer in self._peers.items() if peer.expires_at <= now]
        for uid in expired:
            del self._peers[uid]
        return sorted(self._peers.values(), key=lambda p: p.user_id)

    def names(self) -> list[str]:
        """Display names of peers still typing."""
        return [peer.user_name for peer in self.active()]
