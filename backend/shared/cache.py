"""In-process TTL cache with a stale fallback tier.

Caches are owned by the object that uses them (e.g. the guild config
repository) and created in the bot's composition root. Nothing is shared
across processes.

When the database is unreachable, reads fall back to the last value that was
successfully loaded so prefix lookups and report targets keep working.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

from shared.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None
_MISSING = object()


class AsyncTTLCache:
    """Two-tier cache: a fresh ``TTLCache`` and a bounded LRU of stale values.

    The stale tier is read only by :meth:`get_or_load` after the loader has
    failed with :class:`StoreUnavailable` on every attempt.
    """

    def __init__(self, maxsize: int = 128, ttl: float = 60.0, retry: int = 2, retry_delay: float = 0.5):
        self._maxsize = maxsize
        self._retry = max(1, retry)
        self._retry_delay = retry_delay
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stale: OrderedDict[Hashable, Any] = OrderedDict()
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def _get_lock(self, key: Hashable) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            if len(self._locks) > self._maxsize * 2:
                for k in list(self._locks):
                    if k not in self._stale and k not in self._cache and not self._locks[k].locked():
                        del self._locks[k]
        return self._locks[key]

    # --- fresh tier ---

    def get(self, key: Hashable) -> Any:
        """Return the fresh value or ``_MISSING``."""
        return self._cache.get(key, _MISSING)

    def set(self, key: Hashable, value: Any) -> None:
        self._cache[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def invalidate(self, key: Hashable) -> None:
        """Drop the fresh value; the stale copy survives."""
        self._cache.pop(key, None)

    # --- stale tier ---

    def get_stale(self, key: Hashable) -> Any:
        value = self._stale.get(key, _MISSING)
        if value is not _MISSING:
            self._stale.move_to_end(key)
        return value

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value or await ``loader`` to fill it.

        Concurrent misses on one key share a lock so the loader runs once.
        ``StoreUnavailable`` is retried, then answered from the stale tier
        when possible; otherwise it propagates.
        """
        value = self.get(key)
        if value is not _MISSING:
            return value

        async with self._get_lock(key):
            value = self.get(key)
            if value is not _MISSING:
                return value

            last_exc: StoreUnavailable | None = None
            for attempt in range(1, self._retry + 1):
                try:
                    value = await loader()
                except StoreUnavailable as exc:
                    last_exc = exc
                    if attempt < self._retry:
                        logger.warning(
                            "Store attempt %d/%d failed for %r, retrying in %.1fs",
                            attempt,
                            self._retry,
                            key,
                            self._retry_delay * attempt,
                        )
                        await asyncio.sleep(self._retry_delay * attempt)
                    continue
                self.set(key, value)
                return value

            stale = self.get_stale(key)
            if stale is not _MISSING:
                logger.warning("Serving stale value for %r: %s", key, last_exc)
                return stale
            raise last_exc or StoreUnavailable(f"Could not load {key!r}")

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def stale_size(self) -> int:
        return len(self._stale)
