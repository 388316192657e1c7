"""Tests for report window selection, clipping, grouping and pagination."""

from datetime import timedelta

import pytest

from conftest import CHANNEL_A, CHANNEL_B, GUILD_ID, GUILD_NAME, utc
from shared.models.report import ReportKind, ReportSummary, UserSummary, SessionDetail
from shared.models.stream_activity import StreamActivity, StreamSession
from shared.periods import period_keys
from streambot.services.reports import ReportAggregator, clip_seconds, overlaps, paginate, summarize


def session(start, end=None, channel_id=CHANNEL_A, interrupted=False) -> StreamSession:
    keys = period_keys(start)
    return StreamSession(
        channel_id=channel_id,
        channel_name="general" if channel_id == CHANNEL_A else "gaming",
        start_time=start,
        end_time=end,
        duration_minutes=int((end - start).total_seconds() // 60) if end else 0,
        interrupted=interrupted,
        day=keys.day,
        week=keys.week,
        month=keys.month,
    )


def activity(user_id: int, username: str, *sessions: StreamSession) -> StreamActivity:
    return StreamActivity(user_id, GUILD_ID, username, GUILD_NAME, sessions=list(sessions))


def user_with(user_id: int, count: int) -> UserSummary:
    details = [
        SessionDetail(user_id, CHANNEL_A, "general", utc(2025, 1, 1, 10), utc(2025, 1, 1, 10, 1), 60)
        for _ in range(count)
    ]
    return UserSummary(user_id, f"user{user_id}", 60 * count, count, 0, details)


SUMMARY = ReportSummary(0, 0, 0)


class TestOverlap:
    """Tests for the half-open overlap predicate."""

    WINDOW = (utc(2025, 1, 1, 10), utc(2025, 1, 1, 11))

    @pytest.mark.parametrize(
        ("start", "end", "expected"),
        [
            (utc(2025, 1, 1, 10, 15), utc(2025, 1, 1, 10, 45), True),  # inside
            (utc(2025, 1, 1, 10, 50), None, True),  # starts inside, still open
            (utc(2025, 1, 1, 9, 30), utc(2025, 1, 1, 10, 20), True),  # ends inside
            (utc(2025, 1, 1, 9, 0), utc(2025, 1, 1, 12, 0), True),  # spans
            (utc(2025, 1, 1, 9, 0), None, True),  # open and started before
            (utc(2025, 1, 1, 9, 0), utc(2025, 1, 1, 10, 0), False),  # ends at window start
            (utc(2025, 1, 1, 11, 0), utc(2025, 1, 1, 11, 30), False),  # starts at window end
            (utc(2025, 1, 1, 8, 0), utc(2025, 1, 1, 9, 0), False),  # before
        ],
    )
    def test_overlap_cases(self, start, end, expected):
        assert overlaps(session(start, end), *self.WINDOW) is expected


class TestClipping:
    """Tests for clip_seconds."""

    def test_session_split_across_adjacent_hours(self):
        s = session(utc(2025, 1, 1, 10, 50), utc(2025, 1, 1, 11, 10))

        first = clip_seconds(s, utc(2025, 1, 1, 10), utc(2025, 1, 1, 11))
        second = clip_seconds(s, utc(2025, 1, 1, 11), utc(2025, 1, 1, 12))

        assert (first, second) == (600, 600)
        assert first + second == (s.end_time - s.start_time).total_seconds()

    def test_open_session_runs_to_window_end(self):
        s = session(utc(2025, 1, 1, 10, 30))
        assert clip_seconds(s, utc(2025, 1, 1, 10), utc(2025, 1, 1, 11)) == 1800

    def test_rounds_to_nearest_second(self):
        start = utc(2025, 1, 1, 10, 0, 0)
        s = session(start, start + timedelta(seconds=10, milliseconds=600))
        assert clip_seconds(s, utc(2025, 1, 1, 10), utc(2025, 1, 1, 11)) == 11


class TestPaginate:
    """Tests for page splitting at user boundaries."""

    def test_empty_report_has_one_no_activity_page(self):
        pages = paginate([], SUMMARY)
        assert len(pages) == 1
        assert pages[0].no_activity
        assert pages[0].entries == []
        assert (pages[0].page_number, pages[0].page_count) == (1, 1)

    def test_large_user_block_is_never_split(self):
        pages = paginate([user_with(1, 8), user_with(2, 1)], SUMMARY, capacity=6)

        assert len(pages) == 2
        first = pages[0].sections()
        assert [(u.user_id, len(d)) for u, d in first] == [(1, 8)]
        assert [(u.user_id, len(d)) for u, d in pages[1].sections()] == [(2, 1)]
        assert all(p.page_count == 2 for p in pages)

    def test_small_users_share_a_page_until_capacity(self):
        pages = paginate([user_with(1, 4), user_with(2, 4), user_with(3, 2)], SUMMARY, capacity=6)

        assert [[u.user_id for u, _ in p.sections()] for p in pages] == [[1, 2], [3]]

    def test_exact_capacity_starts_new_page(self):
        pages = paginate([user_with(1, 6), user_with(2, 1)], SUMMARY, capacity=6)
        assert len(pages) == 2

    def test_summary_repeats_on_every_page(self):
        summary = ReportSummary(9, 540, 2)
        pages = paginate([user_with(1, 8), user_with(2, 1)], summary)
        assert all(p.summary is summary for p in pages)


class TestSummarize:
    """Tests for grouping, ordering and deduplication."""

    WINDOW = (utc(2025, 1, 1, 0), utc(2025, 1, 2, 0))

    def test_daily_orders_users_by_total_time(self):
        light = activity(1, "light", session(utc(2025, 1, 1, 20), utc(2025, 1, 1, 20, 10)))
        heavy = activity(2, "heavy", session(utc(2025, 1, 1, 8), utc(2025, 1, 1, 10)))

        _, users = summarize([light, heavy], *self.WINDOW, ReportKind.DAILY)

        assert [u.username for u in users] == ["heavy", "light"]

    def test_hourly_keeps_most_recent_first(self):
        light = activity(1, "light", session(utc(2025, 1, 1, 20), utc(2025, 1, 1, 20, 10)))
        heavy = activity(2, "heavy", session(utc(2025, 1, 1, 8), utc(2025, 1, 1, 10)))

        _, users = summarize([heavy, light], *self.WINDOW, ReportKind.HOURLY)

        assert [u.username for u in users] == ["light", "heavy"]

    def test_duplicate_documents_are_counted_once(self):
        doc = activity(1, "dup", session(utc(2025, 1, 1, 9), utc(2025, 1, 1, 9, 30)))

        summary, users = summarize([doc, doc], *self.WINDOW, ReportKind.DAILY)

        assert summary.total_sessions == 1
        assert summary.total_seconds == 1800
        assert users[0].session_count == 1

    def test_incomplete_sessions_are_flagged(self):
        doc = activity(
            1,
            "flaky",
            session(utc(2025, 1, 1, 9), utc(2025, 1, 1, 9, 30), interrupted=True),
            session(utc(2025, 1, 1, 23), channel_id=CHANNEL_B),
        )

        summary, users = summarize([doc], *self.WINDOW, ReportKind.DAILY)

        assert users[0].incomplete_count == 2
        assert users[0].sessions[0].end_time is None
        assert summary.total_seconds == 1800 + 3600
        assert summary.unique_streamers == 1


class TestReportAggregator:
    """Tests for ReportAggregator.build_report against the store."""

    async def test_end_to_end_hourly_scenario(self, tracker, store, clock):
        clock.set(utc(2025, 1, 1, 10, 0))
        await tracker.start_session(7, "U", GUILD_ID, GUILD_NAME, CHANNEL_A, "general")
        clock.set(utc(2025, 1, 1, 10, 30))
        await tracker.end_session(7, GUILD_ID)

        report = await ReportAggregator(store).build_report(
            GUILD_ID, utc(2025, 1, 1, 9, 45), utc(2025, 1, 1, 10, 45), ReportKind.HOURLY
        )

        assert len(report.users) == 1
        user = report.users[0]
        assert (user.username, user.session_count, user.total_seconds) == ("U", 1, 1800)
        assert user.incomplete_count == 0
        assert not user.sessions[0].incomplete
        assert len(report.pages) == 1 and not report.pages[0].no_activity

    async def test_empty_window(self, store):
        report = await ReportAggregator(store).build_report(
            GUILD_ID, utc(2025, 1, 1, 9), utc(2025, 1, 1, 10), "hourly"
        )

        assert report.is_empty
        assert len(report.pages) == 1
        assert report.pages[0].no_activity
        assert report.summary == ReportSummary(0, 0, 0)

    async def test_other_guilds_are_excluded(self, tracker, store, clock):
        await tracker.start_session(7, "U", GUILD_ID + 1, "Other", CHANNEL_A, "general")
        clock.advance(minutes=20)
        await tracker.end_session(7, GUILD_ID + 1)

        report = await ReportAggregator(store).build_report(
            GUILD_ID, utc(2025, 1, 1, 10), utc(2025, 1, 1, 11)
        )
        assert report.is_empty

    async def test_timezone_and_kind_are_carried(self, store):
        report = await ReportAggregator(store).build_report(
            GUILD_ID, utc(2025, 1, 1, 5), utc(2025, 1, 2, 5), "daily", "America/New_York"
        )
        assert report.kind is ReportKind.DAILY
        assert report.timezone == "America/New_York"
