"""Stream session lifecycle: start, end, interrupt and channel switches."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import cast

from shared.models.stream_activity import (
    ClosedSession,
    NotificationRef,
    PeriodStats,
    StreamActivity,
    StreamSession,
)
from shared.periods import utcnow
from shared.repositories.stream_activity import ActivityStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class PresenceChange:
    """One voice-state update, already filtered to non-bot members."""

    user_id: int
    username: str
    guild_id: int
    guild_name: str
    old_channel_id: int | None
    old_channel_name: str | None
    new_channel_id: int | None
    new_channel_name: str | None
    was_streaming: bool
    is_streaming: bool

    @property
    def channel_changed(self) -> bool:
        return self.old_channel_id != self.new_channel_id


@dataclass
class StartResult:
    activity: StreamActivity
    session: StreamSession
    closed: ClosedSession | None = None


@dataclass
class CloseResult:
    activity: StreamActivity
    closed: ClosedSession


class TransitionKind(str, Enum):
    STARTED = "started"
    ENDED = "ended"


@dataclass
class SessionTransition:
    """Something the notification sink should announce."""

    kind: TransitionKind
    user_id: int
    guild_id: int
    username: str
    channel_id: int
    channel_name: str
    closed: ClosedSession | None = None
    started_at: datetime | None = None


@dataclass
class LeaderboardEntry:
    user_id: int
    username: str
    total_minutes: int
    session_count: int


@dataclass
class UserStats:
    user_id: int
    guild_id: int
    username: str
    period: PeriodStats
    total_minutes: int
    total_sessions: int
    active: StreamSession | None = None
    last_updated: datetime | None = None


class StreamTracker:
    """Turns presence transitions into session records.

    Every mutation goes through ``store.modify`` so concurrent events for the
    same member are serialized by the store's row lock.
    """

    def __init__(self, store: ActivityStore, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    # ==================== Lifecycle ====================

    async def start_session(
        self,
        user_id: int,
        username: str,
        guild_id: int,
        guild_name: str,
        channel_id: int,
        channel_name: str,
    ) -> StartResult:
        """Open a session, closing any session still open for this member."""
        now = self.clock()

        def apply(activity: StreamActivity) -> StartResult:
            activity.username = username
            activity.guild_name = guild_name
            session, closed = activity.start_session(channel_id, channel_name, now)
            return StartResult(activity, session, closed)

        result = cast(
            StartResult,
            await self.store.modify(
                user_id,
                guild_id,
                apply,
                default=StreamActivity(user_id, guild_id, username, guild_name),
            ),
        )
        if result.closed is not None:
            logger.info(
                f"Closed dangling session of {username} ({user_id}) in {guild_name} "
                f"after {result.closed.duration_minutes}m"
            )
        logger.info(f"Stream started: {username} ({user_id}) in #{channel_name} [{guild_name}]")
        return result

    async def end_session(self, user_id: int, guild_id: int) -> CloseResult | None:
        """Close the open session normally. ``None`` when nothing is open."""
        result = await self._close(user_id, guild_id, interrupted=False)
        if result is not None:
            logger.info(
                f"Stream ended: {result.activity.username} ({user_id}) "
                f"after {result.closed.duration_minutes}m"
            )
        return result

    async def mark_interrupted(
        self, user_id: int, guild_id: int, *, started_at: datetime | None = None
    ) -> CloseResult | None:
        """Force-close the open session without crediting its minutes.

        ``started_at`` pins the session to close; ``None`` is returned when a
        different session has replaced it meanwhile.
        """
        result = await self._close(user_id, guild_id, interrupted=True, started_at=started_at)
        if result is not None:
            logger.info(f"Stream interrupted: {result.activity.username} ({user_id}) in {guild_id}")
        return result

    async def _close(
        self, user_id: int, guild_id: int, *, interrupted: bool, started_at: datetime | None = None
    ) -> CloseResult | None:
        now = self.clock()

        def apply(activity: StreamActivity) -> CloseResult | None:
            if interrupted:
                closed = activity.mark_interrupted(now, started_at)
            else:
                closed = activity.end_session(now)
            return CloseResult(activity, closed) if closed else None

        return await self.store.modify(user_id, guild_id, apply)

    async def switch_channel(
        self,
        user_id: int,
        username: str,
        guild_id: int,
        guild_name: str,
        channel_id: int,
        channel_name: str,
    ) -> tuple[CloseResult | None, StartResult]:
        """Record a move between channels as two discrete sessions."""
        ended = await self.end_session(user_id, guild_id)
        started = await self.start_session(
            user_id, username, guild_id, guild_name, channel_id, channel_name
        )
        return ended, started

    async def apply_presence(self, change: PresenceChange) -> list[SessionTransition]:
        """Dispatch a presence change and return the transitions to announce."""
        was, now_streaming = change.was_streaming, change.is_streaming

        if now_streaming and change.new_channel_id is not None:
            if not was:
                started = await self.start_session(
                    change.user_id,
                    change.username,
                    change.guild_id,
                    change.guild_name,
                    change.new_channel_id,
                    change.new_channel_name or "unknown channel",
                )
                transitions = []
                if started.closed is not None:
                    transitions.append(self._ended(change, started.closed))
                transitions.append(self._started(change, started.session))
                return transitions

            if change.channel_changed:
                ended, started = await self.switch_channel(
                    change.user_id,
                    change.username,
                    change.guild_id,
                    change.guild_name,
                    change.new_channel_id,
                    change.new_channel_name or "unknown channel",
                )
                transitions = []
                if ended is not None:
                    transitions.append(self._ended(change, ended.closed))
                transitions.append(self._started(change, started.session))
                return transitions
            return []

        if was:
            ended = await self.end_session(change.user_id, change.guild_id)
            return [self._ended(change, ended.closed)] if ended else []

        return []

    @staticmethod
    def _started(change: PresenceChange, session: StreamSession) -> SessionTransition:
        return SessionTransition(
            TransitionKind.STARTED,
            change.user_id,
            change.guild_id,
            change.username,
            session.channel_id,
            session.channel_name,
            started_at=session.start_time,
        )

    @staticmethod
    def _ended(change: PresenceChange, closed: ClosedSession) -> SessionTransition:
        return SessionTransition(
            TransitionKind.ENDED,
            change.user_id,
            change.guild_id,
            change.username,
            closed.channel_id,
            closed.channel_name,
            closed,
        )

    async def attach_notification(
        self, user_id: int, guild_id: int, ref: NotificationRef, *, started_at: datetime | None = None
    ) -> bool:
        """Remember where the "started" message went so the end can reply to it.

        With ``started_at`` the reference only lands on that session, never on
        one opened after it.
        """
        result = await self.store.modify(
            user_id, guild_id, lambda activity: activity.attach_notification(ref, started_at)
        )
        return bool(result)

    # ==================== Queries ====================

    async def get_active_session(self, user_id: int, guild_id: int) -> StreamSession | None:
        activity = await self.store.get(user_id, guild_id)
        return activity.open_session if activity else None

    async def get_user_stats(self, user_id: int, guild_id: int, period: str = "all") -> UserStats | None:
        activity = await self.store.get(user_id, guild_id)
        if activity is None:
            return None
        return UserStats(
            user_id=user_id,
            guild_id=guild_id,
            username=activity.username,
            period=activity.period_stats(period, self.clock()),
            total_minutes=activity.total_minutes,
            total_sessions=activity.total_sessions,
            active=activity.open_session,
            last_updated=activity.last_updated,
        )

    async def get_leaderboard(self, guild_id: int, period: str = "all", limit: int = 10) -> list[LeaderboardEntry]:
        """Members ranked by streamed minutes; zero-minute members are left out."""
        now = self.clock()
        entries = []
        for activity in await self.store.list_for_guild(guild_id):
            stats = activity.period_stats(period, now)
            if stats.total_minutes > 0:
                entries.append(
                    LeaderboardEntry(
                        activity.user_id, activity.username, stats.total_minutes, stats.session_count
                    )
                )
        entries.sort(key=lambda e: e.total_minutes, reverse=True)
        return entries[:limit]

    async def get_history(self, user_id: int, guild_id: int, limit: int = 50) -> list[StreamSession]:
        """Closed sessions, newest first."""
        activity = await self.store.get(user_id, guild_id)
        if activity is None:
            return []
        return activity.closed_sessions()[:limit]
