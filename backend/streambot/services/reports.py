"""Time-windowed report aggregation over stored stream sessions."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from shared.models.report import (
    PAGE_CAPACITY,
    Report,
    ReportEntry,
    ReportKind,
    ReportPage,
    ReportSummary,
    SessionDetail,
    UserSummary,
)
from shared.models.stream_activity import StreamActivity, StreamSession
from shared.periods import DEFAULT_TIMEZONE, ensure_utc
from shared.repositories.stream_activity import ActivityStore

logger = logging.getLogger(__name__)


def overlaps(session: StreamSession, window_start: datetime, window_end: datetime) -> bool:
    """Half-open overlap test against ``[window_start, window_end)``.

    A session counts if it started inside the window, ended inside it after
    starting earlier, or spans it. Touching a boundary is not overlap.
    """
    start, end = session.start_time, session.end_time
    if window_start <= start < window_end:
        return True
    if start < window_start:
        if end is None or end > window_end:
            return True
        return window_start < end <= window_end
    return False


def clip_seconds(session: StreamSession, window_start: datetime, window_end: datetime) -> int:
    """Seconds of ``session`` inside the window; open sessions run to ``window_end``."""
    clipped_start = max(session.start_time, window_start)
    end = session.end_time if session.end_time is not None else window_end
    clipped_end = min(end, window_end)
    return max(0, round((clipped_end - clipped_start).total_seconds()))


def paginate(users: list[UserSummary], summary: ReportSummary, capacity: int = PAGE_CAPACITY) -> list[ReportPage]:
    """Split ``[header, detail...]`` blocks into pages.

    A page closes only at a user boundary once it holds ``capacity`` or more
    details, so one user's sessions are never split across pages.
    """
    if not users:
        return [ReportPage(1, 1, summary, [], no_activity=True)]

    linear: list[ReportEntry] = []
    for user in users:
        linear.append(ReportEntry(user))
        linear.extend(ReportEntry(user, detail) for detail in user.sessions)

    chunks: list[list[ReportEntry]] = [[]]
    details_on_page = 0
    for entry in linear:
        if entry.is_header and details_on_page >= capacity:
            chunks.append([])
            details_on_page = 0
        chunks[-1].append(entry)
        if not entry.is_header:
            details_on_page += 1

    return [
        ReportPage(number, len(chunks), summary, chunk)
        for number, chunk in enumerate(chunks, start=1)
    ]


def summarize(
    activities: Iterable[StreamActivity],
    window_start: datetime,
    window_end: datetime,
    kind: ReportKind,
) -> tuple[ReportSummary, list[UserSummary]]:
    """Select, clip, dedupe and group sessions for one window."""
    window_start, window_end = ensure_utc(window_start), ensure_utc(window_end)

    candidates: list[tuple[StreamActivity, StreamSession]] = []
    seen: set[tuple[int, datetime, int]] = set()
    for activity in activities:
        for session in activity.sessions:
            if not overlaps(session, window_start, window_end):
                continue
            identity = (activity.user_id, session.start_time, session.channel_id)
            if identity in seen:
                continue
            seen.add(identity)
            candidates.append((activity, session))

    candidates.sort(key=lambda pair: pair[1].start_time, reverse=True)

    users: dict[int, UserSummary] = {}
    total_seconds = 0
    for activity, session in candidates:
        user = users.get(activity.user_id)
        if user is None:
            user = users[activity.user_id] = UserSummary(activity.user_id, activity.username)

        detail = SessionDetail(
            user_id=activity.user_id,
            channel_id=session.channel_id,
            channel_name=session.channel_name,
            start_time=session.start_time,
            end_time=session.end_time,
            clipped_seconds=clip_seconds(session, window_start, window_end),
            interrupted=session.interrupted,
        )
        user.sessions.append(detail)
        user.session_count += 1
        user.total_seconds += detail.clipped_seconds
        if detail.incomplete:
            user.incomplete_count += 1
        total_seconds += detail.clipped_seconds

    ordered = list(users.values())
    if kind is ReportKind.DAILY:
        # sort() is stable, so ties keep first-seen order
        ordered.sort(key=lambda u: u.total_seconds, reverse=True)

    summary = ReportSummary(
        total_sessions=len(candidates),
        total_seconds=total_seconds,
        unique_streamers=len(users),
    )
    return summary, ordered


class ReportAggregator:
    """Builds paginated reports for one guild and window from the store."""

    def __init__(self, store: ActivityStore, page_capacity: int = PAGE_CAPACITY) -> None:
        self.store = store
        self.page_capacity = page_capacity

    async def build_report(
        self,
        guild_id: int,
        window_start: datetime,
        window_end: datetime,
        kind: ReportKind | str = ReportKind.HOURLY,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> Report:
        kind = ReportKind(kind)
        window_start, window_end = ensure_utc(window_start), ensure_utc(window_end)
        activities = await self.store.list_overlapping(guild_id, window_start, window_end)
        summary, users = summarize(activities, window_start, window_end, kind)
        pages = paginate(users, summary, self.page_capacity)

        logger.info(
            f"Built {kind.value} report for guild {guild_id}: "
            f"{summary.total_sessions} session(s), {summary.unique_streamers} streamer(s), "
            f"{len(pages)} page(s)"
        )
        return Report(
            guild_id=guild_id,
            kind=kind,
            window_start=window_start,
            window_end=window_end,
            timezone=timezone,
            summary=summary,
            users=users,
            pages=pages,
        )
