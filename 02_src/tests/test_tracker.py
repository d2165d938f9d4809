"""Tests for Tracker."""

from datetime import datetime, timezone

import pytest

from teamchat.errors import PersistenceError
from teamchat.tracker import Tracker


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker, storage):
        """Test that track() creates a TraceEvent."""
        await tracker.track(
            event_type="message_sent",
            actor="message_pipeline",
            data={"message_id": 1},
        )

        events = await storage.get_trace_events()
        assert len(events) == 1
        assert events[0].event_type == "message_sent"
        assert events[0].actor == "message_pipeline"
        assert events[0].data == {"message_id": 1}
        assert events[0].id

    @pytest.mark.asyncio
    async def test_track_generates_timestamp(self, tracker, storage):
        """Test that track() stamps events with the current time."""
        before = datetime.now(timezone.utc)
        await tracker.track(event_type="member_joined", actor="chat_session", data={})
        after = datetime.now(timezone.utc)

        events = await storage.get_trace_events()
        assert before <= events[0].timestamp <= after

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_not_raised(self):
        """Tracing must not fail the traced action."""

        class BrokenStorage:
            async def save_trace_event(self, event):
                raise PersistenceError("disk full")

        await Tracker(BrokenStorage()).track(
            event_type="message_sent", actor="message_pipeline", data={}
        )
