"""Presence registry: who is online and through which connections."""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PresenceChange:
    """Result of a join or leave.

    ``transitioned`` is True when the identity went offline->online (join)
    or online->offline (leave). ``online_before`` is the set of online
    identities as it was before the change was applied.
    """

    identity: int
    handle: str
    transitioned: bool
    online_before: frozenset[int] = field(default_factory=frozenset)

    @property
    def others_online(self) -> frozenset[int]:
        """Identities other than this one that were online before the change."""
        return self.online_before - {self.identity}


class IPresenceRegistry(Protocol):
    """Mapping of online identities to their live connection handles."""

    async def join(self, identity: int, handle: str) -> PresenceChange:
        """Register a connection handle for an identity."""
        ...

    async def leave(self, handle: str) -> PresenceChange | None:
        """Remove a connection handle; None if it was never registered."""
        ...

    def snapshot(self) -> frozenset[int]:
        """Currently online identities."""
        ...

    def connections_for(self, identity: int) -> frozenset[str]:
        """Live connection handles of one identity."""
        ...

    def is_online(self, identity: int) -> bool:
        """True iff the identity has at least one live handle."""
        ...


class PresenceRegistry:
    """In-memory presence registry.

    join/leave are serialized on a lock so the online/offline transition is
    decided atomically with the handle-set mutation. Reads do not take the
    lock.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._handles: dict[str, int] = {}  # handle -> identity
        self._members: dict[int, set[str]] = {}  # identity -> handles

    async def join(self, identity: int, handle: str) -> PresenceChange:
        """Register a connection handle for an identity."""
        async with self._lock:
            owner = self._handles.get(handle)
            if owner is not None and owner != identity:
                raise ValueError(
                    f"Connection {handle} is already registered to {owner}"
                )

            online_before = frozenset(self._members)
            handles = self._members.setdefault(identity, set())
            transitioned = not handles
            handles.add(handle)
            self._handles[handle] = identity

        if transitioned:
            logger.info("Member %s is online", identity)
        return PresenceChange(
            identity=identity,
            handle=handle,
            transitioned=transitioned,
            online_before=online_before,
        )

    async def leave(self, handle: str) -> PresenceChange | None:
        """Remove a connection handle; None if it was never registered."""
        async with self._lock:
            identity = self._handles.pop(handle, None)
            if identity is None:
                return None

            online_before = frozenset(self._members)
            handles = self._members.get(identity, set())
            handles.discard(handle)
            transitioned = not handles
            if transitioned:
                self._members.pop(identity, None)

        if transitioned:
            logger.info("Member %s is offline", identity)
        return PresenceChange(
            identity=identity,
            handle=handle,
            transitioned=transitioned,
            online_before=online_before,
        )

    def snapshot(self) -> frozenset[int]:
        """Currently online identities."""
        return frozenset(self._members)

    def connections_for(self, identity: int) -> frozenset[str]:
        """Live connection handles of one identity."""
        return frozenset(self._members.get(identity, ()))

    def is_online(self, identity: int) -> bool:
        """True iff the identity has at least one live handle."""
        return bool(self._members.get(identity))
