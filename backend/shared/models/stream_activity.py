"""Stream activity aggregate: per-user per-guild sessions and rolling totals."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from shared.periods import PeriodKeys, ensure_utc, period_keys

PERIODS = ("day", "week", "month", "all")


@dataclass
class NotificationRef:
    """Location of the "stream started" message, used to thread the reply."""

    message_id: int
    channel_id: int


@dataclass
class StreamSession:
    """One continuous interval of a member streaming in a voice channel."""

    channel_id: int
    channel_name: str
    start_time: datetime
    day: str
    week: str
    month: str
    end_time: datetime | None = None
    duration_minutes: int = 0
    interrupted: bool = False
    notification: NotificationRef | None = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": str(self.channel_id),
            "channel_name": self.channel_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_minutes": self.duration_minutes,
            "interrupted": self.interrupted,
            "day": self.day,
            "week": self.week,
            "month": self.month,
            "notification": (
                {
                    "message_id": str(self.notification.message_id),
                    "channel_id": str(self.notification.channel_id),
                }
                if self.notification
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreamSession:
        notification = data.get("notification")
        end_time = data.get("end_time")
        return cls(
            channel_id=int(data["channel_id"]),
            channel_name=data.get("channel_name") or "unknown channel",
            start_time=ensure_utc(datetime.fromisoformat(data["start_time"])),
            end_time=ensure_utc(datetime.fromisoformat(end_time)) if end_time else None,
            duration_minutes=int(data.get("duration_minutes") or 0),
            interrupted=bool(data.get("interrupted", False)),
            day=data["day"],
            week=data["week"],
            month=data["month"],
            notification=(
                NotificationRef(
                    message_id=int(notification["message_id"]),
                    channel_id=int(notification["channel_id"]),
                )
                if notification
                else None
            ),
        )


@dataclass
class PeriodTotal:
    """Running total for the current day, week or month only."""

    period_key: str
    total_minutes: int = 0
    session_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_key": self.period_key,
            "total_minutes": self.total_minutes,
            "session_count": self.session_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PeriodTotal | None:
        if not data or not data.get("period_key"):
            return None
        return cls(
            period_key=data["period_key"],
            total_minutes=int(data.get("total_minutes") or 0),
            session_count=int(data.get("session_count") or 0),
        )


@dataclass
class ClosedSession:
    """Snapshot of a session at the moment it was closed."""

    channel_id: int
    channel_name: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    interrupted: bool = False
    notification: NotificationRef | None = None


@dataclass
class PeriodStats:
    period: str
    period_key: str | None
    total_minutes: int
    session_count: int


@dataclass
class StreamActivity:
    """Aggregate root for one ``(user_id, guild_id)`` pair.

    Sessions are append-only and only the last one may be open. Methods take
    the current time as an argument so the aggregate never reads a clock.
    """

    user_id: int
    guild_id: int
    username: str
    guild_name: str
    sessions: list[StreamSession] = field(default_factory=list)
    daily: PeriodTotal | None = None
    weekly: PeriodTotal | None = None
    monthly: PeriodTotal | None = None
    total_sessions: int = 0
    total_minutes: int = 0
    last_updated: datetime | None = None

    # ==================== State ====================

    @property
    def open_session(self) -> StreamSession | None:
        if self.sessions and self.sessions[-1].is_open:
            return self.sessions[-1]
        return None

    @property
    def has_open_session(self) -> bool:
        return self.open_session is not None

    # ==================== Transitions ====================

    def start_session(
        self, channel_id: int, channel_name: str, now: datetime
    ) -> tuple[StreamSession, ClosedSession | None]:
        """Open a new session, closing any session that is still open first."""
        now = ensure_utc(now)
        closed = self.end_session(now)
        keys = period_keys(now)
        session = StreamSession(
            channel_id=channel_id,
            channel_name=channel_name,
            start_time=now,
            day=keys.day,
            week=keys.week,
            month=keys.month,
        )
        self.sessions.append(session)

        if self.daily is None:
            self.daily = PeriodTotal(keys.day)
        if self.weekly is None:
            self.weekly = PeriodTotal(keys.week)
        if self.monthly is None:
            self.monthly = PeriodTotal(keys.month)

        self.last_updated = now
        return session, closed

    def end_session(self, now: datetime) -> ClosedSession | None:
        """Close the open session normally. No-op when nothing is open."""
        return self._close(now, interrupted=False)

    def mark_interrupted(self, now: datetime, started_at: datetime | None = None) -> ClosedSession | None:
        """Force-close the open session; counts it but not its duration.

        With ``started_at`` given, only the session that started at that
        instant is closed. A newer session is left alone.
        """
        return self._close(now, interrupted=True, started_at=started_at)

    def _open_since(self, started_at: datetime | None) -> StreamSession | None:
        session = self.open_session
        if session is None:
            return None
        if started_at is not None and session.start_time != ensure_utc(started_at):
            return None
        return session

    def _close(
        self, now: datetime, *, interrupted: bool, started_at: datetime | None = None
    ) -> ClosedSession | None:
        session = self._open_since(started_at)
        if session is None:
            return None

        now = ensure_utc(now)
        session.end_time = now
        session.interrupted = interrupted
        session.duration_minutes = max(0, int((now - session.start_time).total_seconds() // 60))

        minutes = 0 if interrupted else session.duration_minutes
        self.total_sessions += 1
        self.total_minutes += minutes
        self._roll_forward(period_keys(now), minutes)
        self.last_updated = now

        return ClosedSession(
            channel_id=session.channel_id,
            channel_name=session.channel_name,
            start_time=session.start_time,
            end_time=now,
            duration_minutes=session.duration_minutes,
            interrupted=interrupted,
            notification=session.notification,
        )

    def _roll_forward(self, keys: PeriodKeys, minutes: int) -> None:
        """Reset windows whose period has passed, then accumulate."""
        if self.daily is None or self.daily.period_key != keys.day:
            self.daily = PeriodTotal(keys.day)
        if self.weekly is None or self.weekly.period_key != keys.week:
            self.weekly = PeriodTotal(keys.week)
        if self.monthly is None or self.monthly.period_key != keys.month:
            self.monthly = PeriodTotal(keys.month)

        for window in (self.daily, self.weekly, self.monthly):
            window.total_minutes += minutes
            window.session_count += 1

    def attach_notification(self, ref: NotificationRef, started_at: datetime | None = None) -> bool:
        session = self._open_since(started_at)
        if session is None:
            return False
        session.notification = ref
        return True

    # ==================== Queries ====================

    def period_stats(self, period: str, now: datetime | None = None) -> PeriodStats:
        """Stats for ``day``/``week``/``month`` (current period) or ``all``.

        With ``now`` given, a window left over from an earlier period reads
        as zero instead of reporting stale totals.
        """
        if period == "all":
            return PeriodStats("all", None, self.total_minutes, self.total_sessions)
        if period not in ("day", "week", "month"):
            raise ValueError(f"Unknown period: {period}")

        window = {"day": self.daily, "week": self.weekly, "month": self.monthly}[period]
        current_key = getattr(period_keys(now), period) if now is not None else None
        if window is None:
            return PeriodStats(period, current_key, 0, 0)
        if current_key is not None and window.period_key != current_key:
            return PeriodStats(period, current_key, 0, 0)
        return PeriodStats(period, window.period_key, window.total_minutes, window.session_count)

    def closed_sessions(self) -> list[StreamSession]:
        """Closed sessions, newest first."""
        return sorted(
            (s for s in self.sessions if not s.is_open),
            key=lambda s: s.start_time,
            reverse=True,
        )

    # ==================== Serialization ====================

    @classmethod
    def from_record(cls, record: Any) -> StreamActivity:
        """Build from an ``asyncpg.Record`` (or mapping) of ``stream_activities``."""
        row = dict(record)
        return cls(
            user_id=int(row["user_id"]),
            guild_id=int(row["guild_id"]),
            username=row["username"],
            guild_name=row["guild_name"],
            sessions=[StreamSession.from_dict(s) for s in row.get("sessions") or []],
            daily=PeriodTotal.from_dict(row.get("daily_total")),
            weekly=PeriodTotal.from_dict(row.get("weekly_total")),
            monthly=PeriodTotal.from_dict(row.get("monthly_total")),
            total_sessions=int(row.get("total_sessions") or 0),
            total_minutes=int(row.get("total_minutes") or 0),
            last_updated=row.get("last_updated"),
        )
