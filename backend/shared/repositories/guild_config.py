"""Repository for the guild_configs table."""

from __future__ import annotations

from datetime import date
from typing import Any

import asyncpg

from shared.cache import AsyncTTLCache
from shared.database import store_errors
from shared.models.guild_config import GuildConfig
from shared.models.report import ReportKind
from shared.periods import validate_timezone

_UPDATABLE = {
    "guild_name",
    "prefix",
    "notification_channel_id",
    "track_stream_activity",
    "hourly_report_enabled",
    "daily_report_enabled",
    "timezone",
}

_COLUMNS = """
    guild_id, guild_name, prefix, notification_channel_id, track_stream_activity,
    hourly_report_enabled, daily_report_enabled, timezone, last_daily_report,
    created_at, updated_at
"""


class GuildConfigRepository:
    """SQL operations for guild settings, with a per-guild read cache."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        cache: AsyncTTLCache | None = None,
        default_prefix: str = "!",
    ) -> None:
        self.pool = pool
        self.cache = cache or AsyncTTLCache(maxsize=512, ttl=120)
        self.default_prefix = default_prefix

    # ==================== Reads ====================

    async def get(self, guild_id: int) -> GuildConfig | None:
        """Cached lookup. Returns ``None`` when the guild has no row yet."""

        async def load() -> GuildConfig | None:
            with store_errors("get guild config"):
                async with self.pool.acquire() as conn:
                    row = await conn.fetchrow(
                        f"SELECT {_COLUMNS} FROM guild_configs WHERE guild_id = $1",
                        guild_id,
                    )
            return GuildConfig(**dict(row)) if row else None

        return await self.cache.get_or_load(guild_id, load)

    async def get_or_create(self, guild_id: int, guild_name: str) -> GuildConfig:
        config = await self.get(guild_id)
        if config is not None:
            return config

        with store_errors("create guild config"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO guild_configs (guild_id, guild_name, prefix)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (guild_id) DO UPDATE SET guild_name = EXCLUDED.guild_name
                    RETURNING {_COLUMNS}
                    """,
                    guild_id,
                    guild_name,
                    self.default_prefix,
                )
        config = GuildConfig(**dict(row))
        self.cache.set(guild_id, config)
        return config

    async def get_prefix(self, guild_id: int) -> str:
        config = await self.get(guild_id)
        return config.prefix if config and config.prefix else self.default_prefix

    async def is_tracking_enabled(self, guild_id: int) -> bool:
        """Guilds without a row are tracked."""
        config = await self.get(guild_id)
        return config.track_stream_activity if config else True

    async def list_report_targets(self, kind: ReportKind | str) -> list[GuildConfig]:
        """Guilds with a notification channel and the given report kind enabled."""
        kind = ReportKind(kind)
        flag = "hourly_report_enabled" if kind is ReportKind.HOURLY else "daily_report_enabled"
        with store_errors("list report targets"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_COLUMNS} FROM guild_configs
                    WHERE notification_channel_id IS NOT NULL AND {flag}
                    ORDER BY guild_id
                    """
                )
        return [GuildConfig(**dict(r)) for r in rows]

    # ==================== Writes ====================

    async def update_settings(self, guild_id: int, guild_name: str, **fields: Any) -> GuildConfig:
        """Partial update; creates the row first if needed.

        Raises ``InvalidTimezone`` for an unknown ``timezone`` and
        ``ValueError`` for an unknown field name.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown guild config field(s): {', '.join(sorted(unknown))}")
        if "timezone" in fields:
            fields["timezone"] = validate_timezone(fields["timezone"])

        current = await self.get_or_create(guild_id, guild_name)
        if not fields:
            return current

        updates: list[str] = []
        values: list[Any] = [guild_id]
        for idx, (name, value) in enumerate(fields.items(), start=2):
            updates.append(f"{name} = ${idx}")
            values.append(value)

        with store_errors("update guild config"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE guild_configs SET {', '.join(updates)}, updated_at = NOW()
                    WHERE guild_id = $1
                    RETURNING {_COLUMNS}
                    """,
                    *values,
                )
        config = GuildConfig(**dict(row))
        self.cache.set(guild_id, config)
        return config

    async def record_daily_report(self, guild_id: int, report_date: date) -> None:
        with store_errors("record daily report"):
            async with self.pool.acquire() as conn:
                await conn.execute(
                    "UPDATE guild_configs SET last_daily_report = $2 WHERE guild_id = $1",
                    guild_id,
                    report_date,
                )
        self.cache.invalidate(guild_id)
