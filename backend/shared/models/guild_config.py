"""Data model for the guild_configs table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from shared.periods import DEFAULT_TIMEZONE

DEFAULT_PREFIX = "!"


@dataclass
class GuildConfig:
    """Per-guild bot settings."""

    guild_id: int
    guild_name: str = ""
    prefix: str = DEFAULT_PREFIX
    notification_channel_id: int | None = None
    track_stream_activity: bool = True
    hourly_report_enabled: bool = False
    daily_report_enabled: bool = False
    timezone: str = DEFAULT_TIMEZONE
    last_daily_report: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def reports_enabled(self, kind: str) -> bool:
        if self.notification_channel_id is None:
            return False
        if kind == "hourly":
            return self.hourly_report_enabled
        if kind == "daily":
            return self.daily_report_enabled
        raise ValueError(f"Unknown report kind: {kind}")
