"""Tests for report and notification embeds."""

from types import SimpleNamespace

from conftest import CHANNEL_A, GUILD_ID, utc
from shared.models.report import Report, ReportKind, ReportSummary, SessionDetail, UserSummary
from shared.models.stream_activity import ClosedSession, StreamSession
from streambot.embeds import history_embeds, report_embeds, stream_ended_embed
from streambot.services.reports import paginate


def user(user_id: int, count: int, interrupted=False) -> UserSummary:
    details = [
        SessionDetail(
            user_id, CHANNEL_A, "general", utc(2025, 1, 1, 10), utc(2025, 1, 1, 10, 30), 1800, interrupted
        )
        for _ in range(count)
    ]
    return UserSummary(user_id, f"user{user_id}", 1800 * count, count, count if interrupted else 0, details)


def report(kind: ReportKind, users: list[UserSummary]) -> Report:
    summary = ReportSummary(sum(u.session_count for u in users), sum(u.total_seconds for u in users), len(users))
    return Report(
        guild_id=GUILD_ID,
        kind=kind,
        window_start=utc(2025, 1, 1, 10),
        window_end=utc(2025, 1, 1, 11),
        timezone="UTC",
        summary=summary,
        users=users,
        pages=paginate(users, summary),
    )


class TestReportEmbeds:
    """Tests for report_embeds."""

    def test_empty_report_shows_no_streams(self):
        (embed,) = report_embeds(report(ReportKind.HOURLY, []))

        assert embed.title == "📊 Hourly Stream Report"
        names = [f.name for f in embed.fields]
        assert names == ["Summary", "No Streams"]
        assert "past hour" in embed.fields[1].value

    def test_multi_page_titles_and_summary_on_every_page(self):
        embeds = report_embeds(report(ReportKind.DAILY, [user(1, 8), user(2, 1)]))

        assert [e.title for e in embeds] == [
            "📈 Daily Stream Report (Page 1/2)",
            "📈 Daily Stream Report (Page 2/2)",
        ]
        assert all(e.fields[0].name == "Summary" for e in embeds)
        assert "**Total Streams:** 9" in embeds[1].fields[0].value
        assert "2025-01-01" in embeds[0].description

    def test_user_field_lists_sessions(self):
        (embed,) = report_embeds(report(ReportKind.HOURLY, [user(1, 2)]))

        field = embed.fields[1]
        assert field.name == "user1 (2 streams)"
        assert field.value.startswith("**Total Time:** 1h")
        assert field.value.count("Duration: 30m") == 2

    def test_interrupted_sessions_are_marked(self):
        (embed,) = report_embeds(report(ReportKind.HOURLY, [user(1, 1, interrupted=True)]))
        assert "(Interrupted)" in embed.fields[1].value
        assert embed.fields[1].name == "user1 (1 stream)"


class TestNotificationEmbeds:
    """Tests for stream start/end notices."""

    def test_interrupted_end_shows_status_instead_of_duration(self):
        closed = ClosedSession(CHANNEL_A, "general", utc(2025, 1, 1, 10), utc(2025, 1, 1, 12), 120, True)
        embed = stream_ended_embed(1, "streamer", closed)

        fields = {f.name: f.value for f in embed.fields}
        assert fields["Status"] == "Stream was interrupted"
        assert "Duration" not in fields

    def test_normal_end_shows_duration(self):
        closed = ClosedSession(CHANNEL_A, "general", utc(2025, 1, 1, 10), utc(2025, 1, 1, 11, 5), 65)
        embed = stream_ended_embed(1, "streamer", closed)

        fields = {f.name: f.value for f in embed.fields}
        assert fields["Duration"] == "1h 5m"


class TestHistoryEmbeds:
    """Tests for history_embeds."""

    def test_live_session_is_shown_without_history(self):
        active = StreamSession(CHANNEL_A, "general", utc(2025, 1, 1, 10), "2025-01-01", "2025-01", "2025-01")
        (embed,) = history_embeds(SimpleNamespace(display_name="streamer"), [], active=active)

        assert embed.description.startswith("🔴 Live now in")
        assert f"<#{CHANNEL_A}>" in embed.description

    def test_no_history_and_not_live(self):
        (embed,) = history_embeds(SimpleNamespace(display_name="streamer"), [])
        assert embed.description == "No completed streams yet."
