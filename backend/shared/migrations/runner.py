"""Versioned SQL migrations for the stream tracker schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import asyncpg

from shared.database import store_errors

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Arbitrary key shared by every bot instance so only one applies migrations
ADVISORY_LOCK_KEY = 7_420_113


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


class MigrationRunner:
    """Apply ``versions/NNN_description.sql`` files once each, in order.

    Applied versions are recorded in ``schema_migrations``. The whole run
    holds a session-level advisory lock.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, migrations_dir: Path | None = None) -> None:
        self.pool = pool
        self.migrations_dir = migrations_dir or VERSIONS_DIR

    def discover(self) -> list[Migration]:
        return [Migration(p.stem, p) for p in sorted(self.migrations_dir.glob("*.sql"))]

    async def pending(self) -> list[Migration]:
        async with self.pool.acquire() as conn:
            await self._ensure_table(conn)
            applied = await self._applied(conn)
        return [m for m in self.discover() if m.version not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration. Returns the newly applied versions."""
        migrations = self.discover()
        if not migrations:
            logger.info("No migration files found in %s", self.migrations_dir)
            return []

        newly_applied: list[str] = []
        with store_errors("migrations"):
            async with self.pool.acquire() as conn:
                await conn.execute("SELECT pg_advisory_lock($1)", ADVISORY_LOCK_KEY)
                try:
                    await self._ensure_table(conn)
                    applied = await self._applied(conn)
                    for migration in migrations:
                        if migration.version in applied:
                            continue
                        await self._apply_one(conn, migration)
                        newly_applied.append(migration.version)
                finally:
                    await conn.execute("SELECT pg_advisory_unlock($1)", ADVISORY_LOCK_KEY)

        if newly_applied:
            logger.info("Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied))
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _ensure_table(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                version    TEXT PRIMARY KEY,
                name       TEXT NOT NULL,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
            """
        )

    async def _applied(self, conn: asyncpg.Connection) -> set[str]:
        rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
        return {row["version"] for row in rows}

    async def _apply_one(self, conn: asyncpg.Connection, migration: Migration) -> None:
        logger.info("Applying migration: %s", migration.version)
        sql = migration.path.read_text(encoding="utf-8")
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                migration.version,
                migration.name,
            )
