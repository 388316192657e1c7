"""PostgreSQL connection pool management.

Two connection modes are recognised from the DSN:
  - Session mode (any port but 6543): persistent connections, prepared statements
  - Transaction pooler (port 6543, PgBouncer): no prepared statements, no session state

Every connection gets a ``jsonb`` codec so session documents round-trip as
Python lists and dicts.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

import asyncpg

from shared.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Failures that mean "the database is not reachable right now"
CONNECTIVITY_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
    OSError,
    asyncio.TimeoutError,
)


@dataclass
class PoolConfig:
    """Pool sizing, timeouts and startup retry policy."""

    min_size: int = 1
    max_size: int = 4
    timeout: float = 5.0
    command_timeout: float = 15.0
    max_inactive_connection_lifetime: float = 30.0
    max_retries: int = 3
    retry_delay: float = 3.0
    ssl: str | None = None

    tcp_keepalives_idle: int = 30
    tcp_keepalives_interval: int = 10
    tcp_keepalives_count: int = 3

    @classmethod
    def from_env(cls) -> PoolConfig:
        """Read ``DB_POOL_MIN``/``DB_POOL_MAX``/``DB_MAX_RETRIES``/``DB_SSL``."""
        return cls(
            min_size=int(os.getenv("DB_POOL_MIN", "1")),
            max_size=int(os.getenv("DB_POOL_MAX", "4")),
            max_retries=int(os.getenv("DB_MAX_RETRIES", "3")),
            ssl=os.getenv("DB_SSL") or None,
        )


@contextlib.contextmanager
def store_errors(operation: str):
    """Re-raise connectivity failures inside the block as ``StoreUnavailable``."""
    try:
        yield
    except CONNECTIVITY_ERRORS as e:
        raise StoreUnavailable(f"{operation}: {type(e).__name__}: {e}") from e


async def _init_codecs(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


class DatabaseManager:
    """Owns the asyncpg pool for the bot process."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None
        self._pooler_mode: str = "transaction" if ":6543" in database_url else "session"

    async def _init_session_connection(self, conn: asyncpg.Connection) -> None:
        await _init_codecs(conn)
        timeout_ms = int(self.config.command_timeout * 1000)
        await conn.execute(f"SET statement_timeout = {timeout_ms}")

    def _session_pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        return {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "ssl": cfg.ssl,
            "statement_cache_size": 100,
            "max_inactive_connection_lifetime": cfg.max_inactive_connection_lifetime,
            "server_settings": {
                "tcp_keepalives_idle": str(cfg.tcp_keepalives_idle),
                "tcp_keepalives_interval": str(cfg.tcp_keepalives_interval),
                "tcp_keepalives_count": str(cfg.tcp_keepalives_count),
            },
            "init": self._init_session_connection,
        }

    def _transaction_pool_kwargs(self) -> dict[str, Any]:
        # PgBouncer drops idle connections and does not forward session settings
        cfg = self.config
        return {
            "dsn": self.database_url,
            "min_size": 0,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "ssl": cfg.ssl,
            "statement_cache_size": 0,
            "max_inactive_connection_lifetime": 0,
            "init": _init_codecs,
        }

    # ── Lifecycle ────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Create and verify the pool, retrying with exponential backoff.

        Raises ``StoreUnavailable`` once ``max_retries`` attempts have failed.
        """
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        builders = {
            "session": self._session_pool_kwargs,
            "transaction": self._transaction_pool_kwargs,
        }
        pool_kwargs = builders[self._pooler_mode]()
        logger.info(f"Connecting with {self._pooler_mode} mode")

        cfg = self.config
        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await asyncpg.create_pool(**pool_kwargs)
                async with self._pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")

                logger.info(
                    f"Database pool ready "
                    f"(mode={self._pooler_mode}, "
                    f"size={pool_kwargs['min_size']}-{cfg.max_size})"
                )
                return
            except (*CONNECTIVITY_ERRORS, asyncpg.PostgresError) as e:
                await self._discard_pool()
                if attempt < cfg.max_retries:
                    delay = cfg.retry_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Database connection attempt {attempt}/{cfg.max_retries} failed: "
                        f"{type(e).__name__}: {e or repr(e)}, retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        f"Database connection failed after {cfg.max_retries} attempts: "
                        f"{type(e).__name__}: {e or repr(e)}"
                    )
                    raise StoreUnavailable(f"cannot connect: {type(e).__name__}: {e}") from e

    async def _discard_pool(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        try:
            await pool.close()
        except CONNECTIVITY_ERRORS as e:
            logger.debug(f"Ignoring error while closing failed pool: {e}")

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        try:
            await self._pool.close()
            logger.info("Database pool closed")
        except Exception as e:
            logger.exception(f"Error closing database pool: {e}")
        finally:
            self._pool = None

    async def check_health(self) -> bool:
        """Test whether the pool can execute a query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (*CONNECTIVITY_ERRORS, asyncpg.PostgresError):
            return False

    @property
    def pool(self) -> asyncpg.Pool:
        """The connection pool. Raises if ``connect()`` has not run."""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
