"""Repository for the stream_activities table."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol, TypeVar

import asyncpg

from shared.database import store_errors
from shared.models.stream_activity import StreamActivity

T = TypeVar("T")

_COLUMNS = """
    user_id, guild_id, username, guild_name, sessions,
    daily_total, weekly_total, monthly_total,
    total_sessions, total_minutes, has_open_session, last_updated
"""


class ActivityStore(Protocol):
    """Persistence seam used by the tracker, recovery and reports."""

    async def get(self, user_id: int, guild_id: int) -> StreamActivity | None: ...

    async def modify(
        self,
        user_id: int,
        guild_id: int,
        fn: Callable[[StreamActivity], T],
        *,
        default: StreamActivity | None = None,
    ) -> T | None: ...

    async def list_open(self) -> list[StreamActivity]: ...

    async def list_overlapping(
        self, guild_id: int, start: datetime, end: datetime
    ) -> list[StreamActivity]: ...

    async def list_for_guild(self, guild_id: int) -> list[StreamActivity]: ...


def _row_values(activity: StreamActivity) -> tuple:
    return (
        activity.user_id,
        activity.guild_id,
        activity.username,
        activity.guild_name,
        [s.to_dict() for s in activity.sessions],
        activity.daily.to_dict() if activity.daily else None,
        activity.weekly.to_dict() if activity.weekly else None,
        activity.monthly.to_dict() if activity.monthly else None,
        activity.total_sessions,
        activity.total_minutes,
        activity.has_open_session,
        activity.last_updated,
    )


class StreamActivityRepository:
    """asyncpg implementation of :class:`ActivityStore`.

    Each ``(user_id, guild_id)`` aggregate is one row; sessions and rolling
    totals are JSONB documents. Connectivity failures surface as
    ``StoreUnavailable``.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Single Aggregate ====================

    async def get(self, user_id: int, guild_id: int) -> StreamActivity | None:
        with store_errors("get activity"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM stream_activities WHERE user_id = $1 AND guild_id = $2",
                    user_id,
                    guild_id,
                )
        return StreamActivity.from_record(row) if row else None

    async def modify(
        self,
        user_id: int,
        guild_id: int,
        fn: Callable[[StreamActivity], T],
        *,
        default: StreamActivity | None = None,
    ) -> T | None:
        """Atomically load, mutate and save one aggregate.

        ``fn`` runs while the row is locked (``SELECT ... FOR UPDATE``) and
        mutates the aggregate in place. The row is written back only when
        ``fn`` returns a truthy result. Returns ``None`` without calling
        ``fn`` if the row is absent and no ``default`` was given.
        """
        with store_errors("modify activity"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    if default is not None:
                        await conn.execute(
                            f"""
                            INSERT INTO stream_activities ({_COLUMNS})
                            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, COALESCE($12, NOW()))
                            ON CONFLICT (user_id, guild_id) DO NOTHING
                            """,
                            *_row_values(default),
                        )

                    row = await conn.fetchrow(
                        f"""
                        SELECT {_COLUMNS} FROM stream_activities
                        WHERE user_id = $1 AND guild_id = $2
                        FOR UPDATE
                        """,
                        user_id,
                        guild_id,
                    )
                    if row is None:
                        return None

                    activity = StreamActivity.from_record(row)
                    result = fn(activity)
                    if result:
                        await self._save(conn, activity)
                    return result

    async def _save(self, conn: asyncpg.Connection, activity: StreamActivity) -> None:
        await conn.execute(
            """
            UPDATE stream_activities SET
                username         = $3,
                guild_name       = $4,
                sessions         = $5,
                daily_total      = $6,
                weekly_total     = $7,
                monthly_total    = $8,
                total_sessions   = $9,
                total_minutes    = $10,
                has_open_session = $11,
                last_updated     = COALESCE($12, NOW())
            WHERE user_id = $1 AND guild_id = $2
            """,
            *_row_values(activity),
        )

    # ==================== Queries ====================

    async def list_open(self) -> list[StreamActivity]:
        """All aggregates whose last session is still open."""
        with store_errors("list open sessions"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM stream_activities WHERE has_open_session"
                )
        return [StreamActivity.from_record(r) for r in rows]

    async def list_overlapping(
        self, guild_id: int, start: datetime, end: datetime
    ) -> list[StreamActivity]:
        """Aggregates of a guild with at least one session touching ``[start, end)``.

        This is a coarse filter; callers clip and re-check every session.
        """
        # Superset of streambot.services.reports.overlaps(); keep the two in step
        with store_errors("list overlapping sessions"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_COLUMNS} FROM stream_activities a
                    WHERE a.guild_id = $1
                      AND EXISTS (
                        SELECT 1 FROM jsonb_array_elements(a.sessions) s
                        WHERE (s->>'start_time')::timestamptz < $3
                          AND (
                            (s->>'start_time')::timestamptz >= $2
                            OR s->>'end_time' IS NULL
                            OR (s->>'end_time')::timestamptz > $2
                          )
                      )
                    """,
                    guild_id,
                    start,
                    end,
                )
        return [StreamActivity.from_record(r) for r in rows]

    async def list_for_guild(self, guild_id: int) -> list[StreamActivity]:
        with store_errors("list guild activity"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM stream_activities WHERE guild_id = $1",
                    guild_id,
                )
        return [StreamActivity.from_record(r) for r in rows]
