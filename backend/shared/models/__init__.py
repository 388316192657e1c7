"""Shared data models for the stream tracker."""

from .guild_config import GuildConfig
from .report import (
    Report,
    ReportEntry,
    ReportKind,
    ReportPage,
    ReportSummary,
    SessionDetail,
    UserSummary,
)
from .stream_activity import (
    ClosedSession,
    NotificationRef,
    PeriodStats,
    PeriodTotal,
    StreamActivity,
    StreamSession,
)

__all__ = [
    "ClosedSession",
    "GuildConfig",
    "NotificationRef",
    "PeriodStats",
    "PeriodTotal",
    "Report",
    "ReportEntry",
    "ReportKind",
    "ReportPage",
    "ReportSummary",
    "SessionDetail",
    "StreamActivity",
    "StreamSession",
    "UserSummary",
]
