"""Embed builders shared by the notification sink and the command cogs."""

from __future__ import annotations

from datetime import datetime

import discord

from shared.models.guild_config import GuildConfig
from shared.models.report import Report, ReportKind, ReportPage, SessionDetail, UserSummary
from shared.models.stream_activity import ClosedSession, StreamSession
from shared.periods import format_minutes, format_seconds, get_zone

# Theme
STARTED_COLOR = discord.Color.from_str("#00ff00")
ENDED_COLOR = discord.Color.from_str("#ff0000")
INTERRUPTED_COLOR = discord.Color.from_str("#FFA500")
HOURLY_COLOR = discord.Color.from_str("#0099ff")
DAILY_COLOR = discord.Color.from_str("#00cc99")
INFO_COLOR = discord.Color.from_str("#0099ff")

FIELD_LIMIT = 1024
PERIOD_LABELS = {"day": "Today", "week": "This Week", "month": "This Month", "all": "All Time"}


def _clip(text: str, limit: int = FIELD_LIMIT) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


# ==================== Notifications ====================


def stream_started_embed(user_id: int, username: str, channel_id: int, avatar_url: str | None = None) -> discord.Embed:
    embed = discord.Embed(title="🎬 Stream Started", color=STARTED_COLOR, timestamp=discord.utils.utcnow())
    embed.set_author(name=username, icon_url=avatar_url)
    embed.add_field(name="User", value=f"<@{user_id}>", inline=True)
    embed.add_field(name="Channel", value=f"<#{channel_id}>", inline=True)
    return embed


def stream_ended_embed(
    user_id: int, username: str, closed: ClosedSession, avatar_url: str | None = None
) -> discord.Embed:
    embed = discord.Embed(
        title="🎬 Stream Ended",
        color=INTERRUPTED_COLOR if closed.interrupted else ENDED_COLOR,
        timestamp=discord.utils.utcnow(),
    )
    embed.set_author(name=username, icon_url=avatar_url)
    embed.add_field(name="User", value=f"<@{user_id}>", inline=True)
    embed.add_field(name="Channel", value=f"<#{closed.channel_id}>", inline=True)
    if closed.interrupted:
        embed.add_field(name="Status", value="Stream was interrupted", inline=True)
    else:
        embed.add_field(name="Duration", value=format_minutes(closed.duration_minutes), inline=True)
    return embed


# ==================== Reports ====================


def _report_description(report: Report) -> str:
    if report.kind is ReportKind.DAILY:
        day = report.window_start.astimezone(get_zone(report.timezone)).date()
        return f"Stream activity for {day.isoformat()} ({report.timezone} timezone)"
    start = discord.utils.format_dt(report.window_start, "t")
    end = discord.utils.format_dt(report.window_end, "t")
    return f"Stream activity in the last hour ({start} - {end})"


def _detail_lines(detail: SessionDetail) -> str:
    started = discord.utils.format_dt(detail.start_time, "T")
    if detail.end_time is not None:
        ended = f"Ended: {discord.utils.format_dt(detail.end_time, 'T')}"
    else:
        ended = "Still streaming"
    suffix = " (Interrupted)" if detail.interrupted else ""
    return (
        f"• <#{detail.channel_id}> ({detail.channel_name})\n"
        f"  • Started: {started}\n"
        f"  • {ended}\n"
        f"  • Duration: {format_seconds(detail.clipped_seconds)}{suffix}\n"
    )


def _user_field(user: UserSummary, details: list[SessionDetail]) -> tuple[str, str]:
    plural = "" if user.session_count == 1 else "s"
    name = f"{user.username} ({user.session_count} stream{plural})"
    body = f"**Total Time:** {format_seconds(user.total_seconds)}\n" + "\n".join(
        _detail_lines(d) for d in details
    )
    return name, _clip(body)


def report_page_embed(report: Report, page: ReportPage) -> discord.Embed:
    if report.kind is ReportKind.DAILY:
        title, color = "📈 Daily Stream Report", DAILY_COLOR
    else:
        title, color = "📊 Hourly Stream Report", HOURLY_COLOR
    if page.page_count > 1:
        title = f"{title} (Page {page.page_number}/{page.page_count})"

    embed = discord.Embed(
        title=title,
        description=_report_description(report),
        color=color,
        timestamp=report.window_end,
    )
    summary = page.summary
    embed.add_field(
        name="Summary",
        value=(
            f"**Total Streams:** {summary.total_sessions}\n"
            f"**Total Streaming Time:** {format_seconds(summary.total_seconds)}\n"
            f"**Unique Streamers:** {summary.unique_streamers}"
        ),
        inline=False,
    )

    if page.no_activity:
        when = "in the past hour" if report.kind is ReportKind.HOURLY else "on this day"
        embed.add_field(name="No Streams", value=f"No streaming activity {when}.", inline=False)
        return embed

    for user, details in page.sections():
        name, value = _user_field(user, details)
        embed.add_field(name=name, value=value, inline=False)
    return embed


def report_embeds(report: Report) -> list[discord.Embed]:
    return [report_page_embed(report, page) for page in report.pages]


# ==================== Commands ====================


def stats_embed(
    member: discord.abc.User,
    period: str,
    total_minutes: int,
    session_count: int,
    lifetime_minutes: int,
    lifetime_sessions: int,
    active: StreamSession | None,
    now: datetime,
) -> discord.Embed:
    embed = discord.Embed(
        title=f"Stream Stats: {member.display_name}",
        color=INFO_COLOR,
        timestamp=now,
    )
    embed.set_thumbnail(url=member.display_avatar.url)
    label = PERIOD_LABELS.get(period, period)
    embed.add_field(name=f"{label} Streaming Time", value=format_minutes(total_minutes), inline=True)
    embed.add_field(name=f"{label} Streams", value=str(session_count), inline=True)
    if period != "all":
        embed.add_field(
            name="All Time",
            value=f"{format_minutes(lifetime_minutes)} over {lifetime_sessions} stream(s)",
            inline=False,
        )
    if active is not None:
        live_minutes = int((now - active.start_time).total_seconds() // 60)
        embed.add_field(
            name="🔴 Currently Streaming",
            value=(
                f"In <#{active.channel_id}> since {discord.utils.format_dt(active.start_time, 'R')} "
                f"({format_minutes(live_minutes)})"
            ),
            inline=False,
        )
    return embed


def leaderboard_embed(guild_name: str, period: str, rows: list[tuple[int, str, int, int]]) -> discord.Embed:
    label = PERIOD_LABELS.get(period, period)
    embed = discord.Embed(title=f"🏆 Stream Leaderboard ({label})", color=INFO_COLOR)
    if not rows:
        embed.description = "No streaming activity recorded yet."
        return embed

    medals = {1: "🥇", 2: "🥈", 3: "🥉"}
    lines = []
    for rank, (user_id, username, minutes, sessions) in enumerate(rows, start=1):
        prefix = medals.get(rank, f"`#{rank}`")
        lines.append(f"{prefix} <@{user_id}> **{format_minutes(minutes)}** ({sessions} stream(s))")
    embed.description = "\n".join(lines)
    embed.set_footer(text=guild_name)
    return embed


def history_embeds(
    member: discord.abc.User,
    sessions: list[StreamSession],
    per_page: int = 5,
    active: StreamSession | None = None,
) -> list[discord.Embed]:
    """One embed per page of closed sessions; a live session shows on every page."""
    live = None
    if active is not None:
        since = discord.utils.format_dt(active.start_time, "R")
        live = f"🔴 Live now in <#{active.channel_id}> (started {since})"

    if not sessions:
        embed = discord.Embed(
            title=f"Stream History: {member.display_name}",
            description=live or "No completed streams yet.",
            color=INFO_COLOR,
        )
        return [embed]

    chunks = [sessions[i : i + per_page] for i in range(0, len(sessions), per_page)]
    embeds = []
    for number, chunk in enumerate(chunks, start=1):
        title = f"Stream History: {member.display_name}"
        if len(chunks) > 1:
            title = f"{title} (Page {number}/{len(chunks)})"
        embed = discord.Embed(title=title, description=live, color=INFO_COLOR)
        for session in chunk:
            duration = format_seconds(session.duration_minutes * 60, interrupted=session.interrupted)
            embed.add_field(
                name=f"{discord.utils.format_dt(session.start_time, 'f')}",
                value=f"<#{session.channel_id}> ({session.channel_name})\nDuration: {duration}",
                inline=False,
            )
        embeds.append(embed)
    return embeds


def report_settings_embed(guild_name: str, config: GuildConfig, prefix: str) -> discord.Embed:
    def state(flag: bool) -> str:
        return "Enabled" if flag else "Disabled"

    embed = discord.Embed(
        title="Stream Report Settings",
        description=f"Current report settings for {guild_name}",
        color=INFO_COLOR,
    )
    embed.add_field(name="Hourly Reports", value=state(config.hourly_report_enabled), inline=True)
    embed.add_field(name="Daily Reports", value=state(config.daily_report_enabled), inline=True)
    embed.add_field(name="Timezone", value=config.timezone, inline=True)
    channel = f"<#{config.notification_channel_id}>" if config.notification_channel_id else "Not set"
    embed.add_field(name="Report Channel", value=channel, inline=True)
    embed.add_field(name="Tracking", value=state(config.track_stream_activity), inline=True)
    embed.add_field(
        name="Usage Examples",
        value=(
            f"`{prefix}setreport hourly on` - Enable hourly reports\n"
            f"`{prefix}setreport daily on` - Enable daily reports\n"
            f"`{prefix}setreport timezone America/New_York` - Set timezone\n"
            f"`{prefix}setreport off` - Disable all reports"
        ),
        inline=False,
    )
    return embed


def welcome_embed(prefix: str) -> discord.Embed:
    return discord.Embed(
        title="Thanks for adding the stream tracker!",
        description=(
            "I track streaming activity in voice channels and provide detailed stats.\n\n"
            "**Getting Started**\n"
            f"• `{prefix}setnoti #channel` sets where stream notifications are sent\n"
            f"• `{prefix}stats` shows your streaming stats\n"
            f"• `{prefix}leaderboard` shows who streams the most\n\n"
            "Every command is also available as a slash command."
        ),
        color=INFO_COLOR,
    )
