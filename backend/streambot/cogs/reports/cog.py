"""Reports cog: hourly and daily schedules plus the on-demand command."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from discord import app_commands
from discord.ext import commands, tasks

from shared.errors import StoreUnavailable
from shared.models.report import ReportKind
from shared.periods import daily_window, hourly_window, utcnow
from streambot.embeds import report_embeds
from streambot.views import send_paginated

from .constants import DAILY_CHECK_MINUTES, HOURLY_RUN_TIMES

if TYPE_CHECKING:
    from streambot.bot import StreamBot

logger = logging.getLogger(__name__)


class ReportsCog(commands.Cog, name="Reports"):
    """Stream activity reports"""

    def __init__(self, bot: StreamBot):
        self.bot = bot

    async def cog_load(self) -> None:
        self.hourly_report_task.start()
        self.daily_report_task.start()

    async def cog_unload(self) -> None:
        self.hourly_report_task.cancel()
        self.daily_report_task.cancel()

    # ==================== Background Tasks ====================

    @tasks.loop(time=HOURLY_RUN_TIMES)
    async def hourly_report_task(self) -> None:
        if self.bot.scheduler is None:
            return
        # The loop can fire a little late; reports always cover a whole clock hour
        now = utcnow().replace(minute=0, second=0, microsecond=0)
        try:
            await self.bot.scheduler.run_hourly(now)
        except StoreUnavailable as e:
            logger.warning(f"Hourly reports skipped, store unavailable: {e}")

    @tasks.loop(minutes=DAILY_CHECK_MINUTES)
    async def daily_report_task(self) -> None:
        if self.bot.scheduler is None:
            return
        try:
            await self.bot.scheduler.run_daily(utcnow())
        except StoreUnavailable as e:
            logger.warning(f"Daily reports skipped, store unavailable: {e}")

    @hourly_report_task.before_loop
    @daily_report_task.before_loop
    async def _wait_for_recovery(self) -> None:
        await self.bot.wait_until_ready()
        await self.bot.recovery_done.wait()

    # ==================== Commands ====================

    @commands.hybrid_command(name="report", description="Show the hourly or daily stream report now")
    @commands.guild_only()
    @app_commands.describe(kind="hourly: the last hour, daily: yesterday in the server's timezone")
    async def report(self, ctx: commands.Context, kind: Literal["hourly", "daily"] = "hourly"):
        if not ctx.guild:
            return
        if self.bot.aggregator is None or self.bot.guild_configs is None:
            await ctx.send("Reports are not available yet.", ephemeral=True)
            return

        config = await self.bot.guild_configs.get_or_create(ctx.guild.id, ctx.guild.name)
        now = utcnow()
        if kind == "daily":
            start, end = daily_window(now, config.timezone)
        else:
            start, end = hourly_window(now)

        report = await self.bot.aggregator.build_report(
            ctx.guild.id, start, end, ReportKind(kind), config.timezone
        )
        await send_paginated(ctx, report_embeds(report), owner_id=ctx.author.id)
