"""Command rate limiting: per-user cooldowns and a per-guild budget."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from cachetools import TTLCache  # type: ignore[import-untyped]
from discord.ext import commands

logger = logging.getLogger(__name__)

GUILD_WINDOW_SECONDS = 60


class CooldownActive(commands.CheckFailure):
    """A command was invoked before its cooldown or guild budget allowed."""

    def __init__(self, retry_after: float, scope: str) -> None:
        self.retry_after = retry_after
        self.scope = scope
        seconds = max(1, math.ceil(retry_after))
        super().__init__(
            f"Please wait {seconds} more second(s) before using this command again."
        )


class CommandCooldowns:
    """Owned, TTL-evicted rate-limit state for one bot process.

    Each user has a cooldown per command. Each guild has a budget of
    ``guild_per_minute`` commands per fixed one-minute window.
    """

    def __init__(
        self,
        cooldown: float = 3.0,
        guild_per_minute: int = 30,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int = 10_000,
    ) -> None:
        self.cooldown = cooldown
        self.guild_per_minute = guild_per_minute
        self.clock = clock
        self._last_use: TTLCache = TTLCache(maxsize=maxsize, ttl=max(cooldown, 0.001), timer=clock)
        self._guild_counts: TTLCache = TTLCache(maxsize=maxsize, ttl=GUILD_WINDOW_SECONDS * 2, timer=clock)

    def hit(self, user_id: int, guild_id: int | None, command_name: str) -> None:
        """Record one invocation or raise ``CooldownActive``."""
        now = self.clock()

        user_key = (user_id, command_name)
        if self.cooldown > 0 and user_key in self._last_use:
            remaining = self.cooldown - (now - self._last_use[user_key])
            if remaining > 0:
                raise CooldownActive(remaining, "user")

        if guild_id is not None and self.guild_per_minute > 0:
            window = int(now // GUILD_WINDOW_SECONDS)
            guild_key = (guild_id, window)
            count = self._guild_counts.get(guild_key, 0)
            if count >= self.guild_per_minute:
                logger.warning(f"Guild {guild_id} hit its command budget ({self.guild_per_minute}/min)")
                raise CooldownActive(GUILD_WINDOW_SECONDS - (now % GUILD_WINDOW_SECONDS), "guild")
            self._guild_counts[guild_key] = count + 1

        if self.cooldown > 0:
            self._last_use[user_key] = now

    async def check(self, ctx: commands.Context) -> bool:
        """Global bot check."""
        if ctx.command is None:
            return True
        self.hit(ctx.author.id, ctx.guild.id if ctx.guild else None, ctx.command.qualified_name)
        return True

    @property
    def tracked_users(self) -> int:
        return len(self._last_use)
