"""Guild settings commands"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal, cast

import discord
from discord import app_commands
from discord.ext import commands

from shared.errors import InvalidTimezone
from streambot.embeds import report_settings_embed

if TYPE_CHECKING:
    from shared.repositories.guild_config import GuildConfigRepository
    from streambot.bot import StreamBot

logger = logging.getLogger(__name__)

MAX_PREFIX_LENGTH = 5
Toggle = Literal["on", "off"]


class Settings(commands.Cog):
    """Notification channel, prefix, tracking and report settings"""

    def __init__(self, bot: StreamBot):
        self.bot = bot

    async def cog_check(self, ctx: commands.Context) -> bool:
        if self.bot.guild_configs is None:
            raise commands.CheckFailure("Settings are not available yet.")
        return True

    @property
    def configs(self) -> GuildConfigRepository:
        return cast("GuildConfigRepository", self.bot.guild_configs)

    @commands.hybrid_command(name="setnoti", description="Set the channel for stream notifications and reports")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    @app_commands.describe(channel="Text channel that receives notifications")
    async def setnoti(self, ctx: commands.Context, channel: discord.TextChannel):
        if not ctx.guild:
            return
        me = ctx.guild.me
        if not channel.permissions_for(me).send_messages or not channel.permissions_for(me).embed_links:
            await ctx.send(f"I need permission to send messages and embeds in {channel.mention}.", ephemeral=True)
            return

        await self.configs.update_settings(ctx.guild.id, ctx.guild.name, notification_channel_id=channel.id)
        logger.info(f"Notification channel for {ctx.guild.name} ({ctx.guild.id}) set to #{channel.name}")
        await ctx.send(f"Stream notifications will be sent to {channel.mention}.")

    @commands.hybrid_command(name="setprefix", aliases=["prefix"], description="Set the command prefix for this server")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    @app_commands.describe(prefix=f"New prefix (up to {MAX_PREFIX_LENGTH} characters)")
    async def setprefix(self, ctx: commands.Context, prefix: str):
        if not ctx.guild:
            return
        prefix = prefix.strip()
        if not prefix or len(prefix) > MAX_PREFIX_LENGTH:
            await ctx.send(f"Please provide a valid prefix (maximum {MAX_PREFIX_LENGTH} characters).", ephemeral=True)
            return

        await self.configs.update_settings(ctx.guild.id, ctx.guild.name, prefix=prefix)
        await ctx.send(f"Server prefix has been updated to: `{prefix}`")

    @commands.hybrid_command(name="tracking", description="Turn stream tracking on or off for this server")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    @app_commands.describe(state="on or off")
    async def tracking(self, ctx: commands.Context, state: Toggle):
        if not ctx.guild:
            return
        enabled = state == "on"
        await self.configs.update_settings(ctx.guild.id, ctx.guild.name, track_stream_activity=enabled)
        await ctx.send(f"Stream tracking has been {'enabled' if enabled else 'disabled'}.")

    @commands.hybrid_command(name="setreport", description="Configure scheduled stream reports")
    @commands.guild_only()
    @commands.has_permissions(manage_guild=True)
    @app_commands.describe(
        action="What to configure",
        value="on/off for hourly and daily, an IANA name for timezone",
    )
    async def setreport(
        self,
        ctx: commands.Context,
        action: Literal["info", "hourly", "daily", "timezone", "off"] = "info",
        value: str | None = None,
    ):
        if not ctx.guild:
            return
        guild = ctx.guild
        config = await self.configs.get_or_create(guild.id, guild.name)
        prefix = config.prefix

        if config.notification_channel_id is None:
            await ctx.send(
                f"You must set a notification channel first using `{prefix}setnoti`.", ephemeral=True
            )
            return

        if action == "info":
            await ctx.send(embed=report_settings_embed(guild.name, config, prefix))
            return

        if action == "off":
            await self.configs.update_settings(
                guild.id, guild.name, hourly_report_enabled=False, daily_report_enabled=False
            )
            await ctx.send("All scheduled reports have been disabled.", ephemeral=True)
            return

        if action == "timezone":
            if not value:
                await ctx.send(
                    "Please specify a timezone (e.g. UTC, America/New_York, Europe/London).", ephemeral=True
                )
                return
            try:
                config = await self.configs.update_settings(guild.id, guild.name, timezone=value)
            except InvalidTimezone:
                await ctx.send(
                    f'Invalid timezone: "{value}". Please use a valid IANA timezone identifier '
                    "(e.g. UTC, America/New_York, Europe/London).",
                    ephemeral=True,
                )
                return
            await ctx.send(
                f"Timezone has been set to {config.timezone}. "
                "Daily reports will be sent at midnight in this timezone.",
                ephemeral=True,
            )
            return

        state = (value or "").lower()
        if state not in ("on", "off"):
            await ctx.send(f"Please specify `on` or `off`, e.g. `{prefix}setreport {action} on`.", ephemeral=True)
            return

        enabled = state == "on"
        config = await self.configs.update_settings(guild.id, guild.name, **{f"{action}_report_enabled": enabled})
        message = f"{action.capitalize()} reports have been {'enabled' if enabled else 'disabled'}."
        if action == "daily" and enabled:
            message += f" Reports will be sent at midnight in {config.timezone} timezone."
        await ctx.send(message, ephemeral=True)


async def setup(bot: StreamBot) -> None:
    await bot.add_cog(Settings(bot))
