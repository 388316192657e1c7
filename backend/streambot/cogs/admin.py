"""
Owner-only maintenance commands
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

if TYPE_CHECKING:
    from streambot.bot import StreamBot

logger = logging.getLogger(__name__)

COG_PACKAGE = "streambot.cogs"


class Admin(commands.Cog):
    """Bot owner commands"""

    def __init__(self, bot: StreamBot):
        self.bot = bot

    def cog_check(self, ctx: commands.Context) -> bool:
        """Only the bot owner may use this cog."""
        return ctx.author.id == self.bot.owner_id if self.bot.owner_id else False

    async def cog_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        """Loaded cog names"""
        cogs = [ext.rsplit(".", 1)[-1] for ext in self.bot.extensions if ext.startswith(COG_PACKAGE)]
        return [
            app_commands.Choice(name=cog, value=cog)
            for cog in cogs
            if current.lower() in cog.lower()
        ][:25]

    @commands.hybrid_command(name="reload", description="Reload a cog (owner only)")
    @app_commands.describe(cog="Cog name, e.g. stats or reports")
    @app_commands.autocomplete(cog=cog_autocomplete)
    async def reload_cog(self, ctx: commands.Context, cog: str):
        cog_path = f"{COG_PACKAGE}.{cog}"

        try:
            await self.bot.reload_extension(cog_path)
        except commands.ExtensionNotLoaded:
            await ctx.send(f"Cog is not loaded: {cog}", ephemeral=True)
            logger.error(f"Reload failed: {cog_path} is not loaded")
            return
        except commands.ExtensionNotFound:
            await ctx.send(f"Cog not found: {cog}", ephemeral=True)
            logger.error(f"Reload failed: {cog_path} not found")
            return
        except commands.ExtensionError as e:
            await ctx.send(f"Reload failed: {type(e).__name__}", ephemeral=True)
            logger.exception(f"Error reloading {cog_path}: {e}")
            return

        sync_msg = await self.bot.sync_commands()
        await ctx.send(f"✅ Reloaded: {cog}\n📡 {sync_msg}", ephemeral=True)
        logger.info(f"Reloaded {cog_path} (by {ctx.author})")

    @commands.hybrid_command(name="sync", description="Sync slash commands (owner only)")
    async def sync(self, ctx: commands.Context):
        sync_msg = await self.bot.sync_commands()
        await ctx.send(f"📡 Slash commands {sync_msg}", ephemeral=True)


async def setup(bot: StreamBot) -> None:
    await bot.add_cog(Admin(bot))
