"""Tests for StreamTracker presence handling and queries."""

import pytest

from conftest import CHANNEL_A, CHANNEL_B, GUILD_ID, GUILD_NAME, USER_ID
from shared.errors import StoreUnavailable
from shared.models.stream_activity import NotificationRef
from streambot.services.tracker import PresenceChange, TransitionKind


def change(
    was: bool,
    now: bool,
    old: int | None = CHANNEL_A,
    new: int | None = CHANNEL_A,
    user_id: int = USER_ID,
    username: str = "streamer",
) -> PresenceChange:
    names = {CHANNEL_A: "general", CHANNEL_B: "gaming"}
    return PresenceChange(
        user_id=user_id,
        username=username,
        guild_id=GUILD_ID,
        guild_name=GUILD_NAME,
        old_channel_id=old,
        old_channel_name=names.get(old),
        new_channel_id=new,
        new_channel_name=names.get(new),
        was_streaming=was,
        is_streaming=now,
    )


class TestApplyPresence:
    """Tests for StreamTracker.apply_presence."""

    async def test_going_live_starts_session(self, tracker, store):
        transitions = await tracker.apply_presence(change(False, True, old=None))

        assert [t.kind for t in transitions] == [TransitionKind.STARTED]
        assert transitions[0].channel_id == CHANNEL_A
        activity = await store.get(USER_ID, GUILD_ID)
        assert activity.open_session.channel_name == "general"
        assert activity.guild_name == GUILD_NAME

    async def test_stopping_ends_session(self, tracker, store, clock):
        await tracker.apply_presence(change(False, True))
        clock.advance(minutes=30, seconds=20)

        transitions = await tracker.apply_presence(change(True, False))

        assert [t.kind for t in transitions] == [TransitionKind.ENDED]
        assert transitions[0].closed.duration_minutes == 30
        activity = await store.get(USER_ID, GUILD_ID)
        assert activity.total_minutes == 30
        assert not activity.has_open_session

    async def test_leaving_voice_while_live_ends_session(self, tracker, clock):
        await tracker.apply_presence(change(False, True))
        clock.advance(minutes=5)

        transitions = await tracker.apply_presence(change(True, False, new=None))
        assert [t.kind for t in transitions] == [TransitionKind.ENDED]

    async def test_channel_switch_records_two_sessions(self, tracker, store, clock):
        await tracker.apply_presence(change(False, True))
        clock.advance(minutes=12)

        transitions = await tracker.apply_presence(change(True, True, old=CHANNEL_A, new=CHANNEL_B))

        assert [t.kind for t in transitions] == [TransitionKind.ENDED, TransitionKind.STARTED]
        assert transitions[0].channel_id == CHANNEL_A
        assert transitions[1].channel_id == CHANNEL_B
        activity = await store.get(USER_ID, GUILD_ID)
        assert [s.channel_id for s in activity.sessions] == [CHANNEL_A, CHANNEL_B]
        assert activity.sessions[0].duration_minutes == 12
        assert activity.open_session.channel_id == CHANNEL_B

    async def test_streaming_in_same_channel_is_ignored(self, tracker, store):
        await tracker.apply_presence(change(False, True))
        writes = store.writes

        assert await tracker.apply_presence(change(True, True)) == []
        assert store.writes == writes

    async def test_start_with_dangling_session_announces_end_first(self, tracker, clock):
        await tracker.apply_presence(change(False, True))
        clock.advance(minutes=3)

        # A missed "stop" event: the next update claims the member was not live
        transitions = await tracker.apply_presence(change(False, True, new=CHANNEL_B))

        assert [t.kind for t in transitions] == [TransitionKind.ENDED, TransitionKind.STARTED]
        assert transitions[0].closed.channel_id == CHANNEL_A

    async def test_stop_without_open_session_is_silent(self, tracker):
        assert await tracker.apply_presence(change(True, False)) == []

    async def test_not_streaming_either_side(self, tracker, store):
        assert await tracker.apply_presence(change(False, False)) == []
        assert store.rows == {}

    async def test_store_outage_propagates(self, tracker, store):
        store.unavailable = True
        with pytest.raises(StoreUnavailable):
            await tracker.apply_presence(change(False, True))


class TestLifecycle:
    """Tests for direct lifecycle calls."""

    async def test_start_refreshes_display_names(self, tracker, store):
        await tracker.start_session(USER_ID, "old name", GUILD_ID, "Old Guild", CHANNEL_A, "general")
        await tracker.end_session(USER_ID, GUILD_ID)
        await tracker.start_session(USER_ID, "new name", GUILD_ID, "New Guild", CHANNEL_A, "general")

        activity = await store.get(USER_ID, GUILD_ID)
        assert (activity.username, activity.guild_name) == ("new name", "New Guild")

    async def test_end_unknown_member_returns_none(self, tracker, store):
        assert await tracker.end_session(USER_ID, GUILD_ID) is None
        assert store.rows == {}

    async def test_mark_interrupted_keeps_minutes(self, tracker, store, clock):
        await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_A, "general")
        clock.advance(hours=2)

        result = await tracker.mark_interrupted(USER_ID, GUILD_ID)

        assert result.closed.interrupted
        activity = await store.get(USER_ID, GUILD_ID)
        assert activity.total_minutes == 0
        assert activity.total_sessions == 1

    async def test_attach_notification(self, tracker, store):
        ref = NotificationRef(message_id=55, channel_id=66)
        assert await tracker.attach_notification(USER_ID, GUILD_ID, ref) is False

        await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_A, "general")
        assert await tracker.attach_notification(USER_ID, GUILD_ID, ref) is True
        session = await tracker.get_active_session(USER_ID, GUILD_ID)
        assert session.notification == ref

    async def test_attach_notification_skips_newer_session(self, tracker, store, clock):
        first = await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_A, "general")
        clock.advance(minutes=1)
        await tracker.end_session(USER_ID, GUILD_ID)
        await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_A, "general")

        ref = NotificationRef(message_id=55, channel_id=66)
        attached = await tracker.attach_notification(
            USER_ID, GUILD_ID, ref, started_at=first.session.start_time
        )

        assert attached is False
        session = await tracker.get_active_session(USER_ID, GUILD_ID)
        assert session.notification is None

    async def test_pinned_interrupt_leaves_newer_session_open(self, tracker, store, clock):
        first = await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_A, "general")
        clock.advance(minutes=5)
        await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_B, "gaming")

        result = await tracker.mark_interrupted(USER_ID, GUILD_ID, started_at=first.session.start_time)

        assert result is None
        session = await tracker.get_active_session(USER_ID, GUILD_ID)
        assert session.channel_id == CHANNEL_B


class TestQueries:
    """Tests for stats, leaderboard and history."""

    async def _stream(self, tracker, clock, user_id, username, minutes):
        await tracker.start_session(user_id, username, GUILD_ID, GUILD_NAME, CHANNEL_A, "general")
        clock.advance(minutes=minutes)
        await tracker.end_session(user_id, GUILD_ID)

    async def test_user_stats_unknown_member(self, tracker):
        assert await tracker.get_user_stats(USER_ID, GUILD_ID) is None

    async def test_user_stats_includes_active_session(self, tracker, clock):
        await self._stream(tracker, clock, USER_ID, "streamer", 40)
        await tracker.start_session(USER_ID, "streamer", GUILD_ID, GUILD_NAME, CHANNEL_B, "gaming")

        stats = await tracker.get_user_stats(USER_ID, GUILD_ID, "day")

        assert stats.period.total_minutes == 40
        assert stats.total_sessions == 1
        assert stats.active.channel_id == CHANNEL_B

    async def test_leaderboard_ranks_and_skips_zero_minutes(self, tracker, clock):
        await self._stream(tracker, clock, 1, "short", 10)
        await self._stream(tracker, clock, 2, "long", 90)
        await self._stream(tracker, clock, 3, "blink", 0)

        entries = await tracker.get_leaderboard(GUILD_ID, "all", limit=10)

        assert [(e.username, e.total_minutes) for e in entries] == [("long", 90), ("short", 10)]

    async def test_leaderboard_respects_limit(self, tracker, clock):
        for user_id in range(1, 6):
            await self._stream(tracker, clock, user_id, f"user{user_id}", user_id * 10)

        entries = await tracker.get_leaderboard(GUILD_ID, "all", limit=3)
        assert [e.user_id for e in entries] == [5, 4, 3]

    async def test_history_newest_first_and_limited(self, tracker, clock):
        for minutes in (5, 10, 15):
            await self._stream(tracker, clock, USER_ID, "streamer", minutes)
            clock.advance(minutes=1)

        history = await tracker.get_history(USER_ID, GUILD_ID, limit=2)
        assert [s.duration_minutes for s in history] == [15, 10]
