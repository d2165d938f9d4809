"""Tests for typing debounce and peer expiry."""

import asyncio

import pytest

from client.typing_indicator import TypingDebouncer, TypingTracker


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def debouncer(emitted):
    async def emit(is_typing: bool) -> None:
        emitted.append(is_typing)

    return TypingDebouncer(emit, idle_timeout=0.05)


class TestTypingDebouncer:
    """Tests for outgoing typing events."""

    @pytest.mark.asyncio
    async def test_burst_emits_true_once(self, debouncer, emitted):
        for _ in range(5):
            await debouncer.keystroke()

        assert emitted == [True]
        assert debouncer.is_typing
        await debouncer.stop()

    @pytest.mark.asyncio
    async def test_idle_emits_false(self, debouncer, emitted):
        await debouncer.keystroke()
        await asyncio.sleep(0.15)

        assert emitted[0] is True
        assert emitted[-1] is False
        assert emitted.count(False) == 1
        assert not debouncer.is_typing

    @pytest.mark.asyncio
    async def test_keystrokes_extend_the_burst(self, debouncer, emitted):
        await debouncer.keystroke()
        for _ in range(3):
            await asyncio.sleep(0.03)
            await debouncer.keystroke()

        assert False not in emitted
        await asyncio.sleep(0.15)
        assert emitted[-1] is False
        assert emitted.count(False) == 1

    @pytest.mark.asyncio
    async def test_long_burst_keeps_peer_indicator(self):
        peer = TypingTracker(timeout=0.3)

        async def relay(is_typing: bool) -> None:
            peer.apply(1, "Alice", is_typing)

        typist = TypingDebouncer(relay, idle_timeout=0.3)
        sent = []
        for _ in range(8):
            await typist.keystroke()
            sent.append(list(peer.names()))
            await asyncio.sleep(0.1)

        assert typist.is_typing
        assert peer.names() == ["Alice"]
        assert all(names == ["Alice"] for names in sent)

        await typist.stop()
        assert peer.names() == []

    @pytest.mark.asyncio
    async def test_heartbeat_is_rarer_than_keystrokes(self):
        emitted = []

        async def emit(is_typing: bool) -> None:
            emitted.append(is_typing)

        typist = TypingDebouncer(emit, idle_timeout=0.2)
        for _ in range(10):
            await typist.keystroke()
            await asyncio.sleep(0.02)
        await typist.stop()

        assert 1 <= emitted.count(True) < 10
        assert emitted[-1] is False

    @pytest.mark.asyncio
    async def test_stop_emits_false_immediately(self, debouncer, emitted):
        await debouncer.keystroke()
        await debouncer.stop()
        await asyncio.sleep(0.1)

        assert emitted == [True, False]

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_silent(self, debouncer, emitted):
        await debouncer.stop()
        assert emitted == []

    @pytest.mark.asyncio
    async def test_emit_failure_is_not_raised(self):
        async def emit(is_typing: bool) -> None:
            raise ConnectionError("closed")

        debouncer = TypingDebouncer(emit, idle_timeout=0.05)
        await debouncer.keystroke()
        await debouncer.stop()


class TestTypingTracker:
    """Tests for peers shown as typing."""

    def test_apply_and_expire(self):
        clock = FakeClock()
        tracker = TypingTracker(timeout=1.0, clock=clock)

        tracker.apply(2, "Bob", True)
        assert tracker.names() == ["Bob"]

        clock.now += 1.5
        assert tracker.names() == []

    def test_refresh_extends(self):
        clock = FakeClock()
        tracker = TypingTracker(timeout=1.0, clock=clock)

        tracker.apply(2, "Bob", True)
        clock.now += 0.8
        tracker.apply(2, "Bob", True)
        clock.now += 0.8

        assert tracker.names() == ["Bob"]

    def test_false_clears(self):
        tracker = TypingTracker()
        tracker.apply(2, "Bob", True)
        tracker.apply(2, "Bob", False)
        assert tracker.active() == []

    def test_sorted_by_user(self):
        tracker = TypingTracker()
        tracker.apply(3, "Carol", True)
        tracker.apply(2, "Bob", True)
        tracker.clear(3)
        tracker.apply(1, "Alice", True)

        assert tracker.names() == ["Alice", "Bob"]
