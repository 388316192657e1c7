"""Data models for hourly and daily stream activity reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

PAGE_CAPACITY = 6


class ReportKind(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


@dataclass
class SessionDetail:
    """One session clipped to the report window."""

    user_id: int
    channel_id: int
    channel_name: str
    start_time: datetime
    end_time: datetime | None
    clipped_seconds: int
    interrupted: bool = False

    @property
    def incomplete(self) -> bool:
        return self.end_time is None or self.interrupted


@dataclass
class UserSummary:
    """Per-user totals inside one report window."""

    user_id: int
    username: str
    total_seconds: int = 0
    session_count: int = 0
    incomplete_count: int = 0
    sessions: list[SessionDetail] = field(default_factory=list)


@dataclass
class ReportSummary:
    """Repeated on every page."""

    total_sessions: int
    total_seconds: int
    unique_streamers: int


@dataclass
class ReportEntry:
    """A user header, or one session detail belonging to ``user``."""

    user: UserSummary
    detail: SessionDetail | None = None

    @property
    def is_header(self) -> bool:
        return self.detail is None


@dataclass
class ReportPage:
    page_number: int
    page_count: int
    summary: ReportSummary
    entries: list[ReportEntry] = field(default_factory=list)
    no_activity: bool = False

    def sections(self) -> list[tuple[UserSummary, list[SessionDetail]]]:
        """Group entries back into ``(user, details)`` blocks for rendering."""
        blocks: list[tuple[UserSummary, list[SessionDetail]]] = []
        for entry in self.entries:
            if entry.is_header:
                blocks.append((entry.user, []))
            elif entry.detail is not None and blocks:
                blocks[-1][1].append(entry.detail)
        return blocks


@dataclass
class Report:
    guild_id: int
    kind: ReportKind
    window_start: datetime
    window_end: datetime
    timezone: str
    summary: ReportSummary
    users: list[UserSummary]
    pages: list[ReportPage]

    @property
    def is_empty(self) -> bool:
        return not self.users
