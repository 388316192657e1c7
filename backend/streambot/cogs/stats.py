"""Stream statistics commands"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, cast

import discord
from discord import app_commands
from discord.ext import commands

from streambot.embeds import history_embeds, leaderboard_embed, stats_embed
from streambot.views import send_paginated

if TYPE_CHECKING:
    from streambot.bot import StreamBot
    from streambot.services.tracker import StreamTracker

Period = Literal["day", "week", "month", "all"]


class Stats(commands.Cog):
    def __init__(self, bot: StreamBot):
        self.bot = bot

    async def cog_check(self, ctx: commands.Context) -> bool:
        if self.bot.tracker is None:
            raise commands.CheckFailure("The tracker is not ready yet.")
        return True

    @property
    def tracker(self) -> StreamTracker:
        return cast("StreamTracker", self.bot.tracker)

    @commands.hybrid_command(name="stats", description="Show streaming stats for a member")
    @commands.guild_only()
    @app_commands.describe(member="Member to look up (defaults to you)", period="Time window")
    async def stats(self, ctx: commands.Context, member: discord.Member | None = None, period: Period = "all"):
        if not ctx.guild:
            return
        target = member or ctx.author
        stats = await self.tracker.get_user_stats(target.id, ctx.guild.id, period)
        if stats is None:
            await ctx.send(f"{target.display_name} hasn't streamed here yet.")
            return

        embed = stats_embed(
            target,
            period,
            stats.period.total_minutes,
            stats.period.session_count,
            stats.total_minutes,
            stats.total_sessions,
            stats.active,
            self.tracker.clock(),
        )
        await ctx.send(embed=embed)

    @commands.hybrid_command(name="leaderboard", description="Members who stream the most")
    @commands.guild_only()
    @app_commands.describe(period="Time window", limit="How many members to show (1-25)")
    async def leaderboard(
        self, ctx: commands.Context, period: Period = "all", limit: commands.Range[int, 1, 25] = 10
    ):
        if not ctx.guild:
            return
        entries = await self.tracker.get_leaderboard(ctx.guild.id, period, limit)
        rows = [(e.user_id, e.username, e.total_minutes, e.session_count) for e in entries]
        await ctx.send(embed=leaderboard_embed(ctx.guild.name, period, rows))

    @commands.hybrid_command(name="history", description="Recent completed streams of a member")
    @commands.guild_only()
    @app_commands.describe(member="Member to look up (defaults to you)", limit="How many streams (1-50)")
    async def history(
        self, ctx: commands.Context, member: discord.Member | None = None, limit: commands.Range[int, 1, 50] = 20
    ):
        if not ctx.guild:
            return
        target = member or ctx.author
        sessions = await self.tracker.get_history(target.id, ctx.guild.id, limit)
        active = await self.tracker.get_active_session(target.id, ctx.guild.id)
        await send_paginated(ctx, history_embeds(target, sessions, active=active), owner_id=ctx.author.id)


async def setup(bot: StreamBot) -> None:
    await bot.add_cog(Stats(bot))
