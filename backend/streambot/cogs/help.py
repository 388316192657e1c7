"""Help command"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from shared.errors import StoreUnavailable
from streambot.config import BotConfig
from streambot.embeds import INFO_COLOR

if TYPE_CHECKING:
    from streambot.bot import StreamBot

CATEGORIES = {
    "📊 Stream Tracking": ("stats", "leaderboard", "history", "report"),
    "⚙️ Configuration": ("setnoti", "setreport", "setprefix", "tracking"),
}
HIDDEN_COGS = {"Admin"}

EXAMPLES = {
    "stats": "`{p}stats` - Your all-time stats\n`{p}stats @user week` - Someone's stats this week",
    "leaderboard": "`{p}leaderboard` - All-time top 10\n`{p}leaderboard day 5` - Today's top 5",
    "history": "`{p}history` - Your recent streams\n`{p}history @user 10` - Someone's last 10 streams",
    "report": "`{p}report hourly` - Activity in the last hour\n`{p}report daily` - Activity yesterday",
    "setnoti": "`{p}setnoti #stream-notifications` - Set the notification channel",
    "setreport": "`{p}setreport hourly on` - Enable hourly reports\n`{p}setreport timezone Europe/London` - Set timezone",
    "setprefix": "`{p}setprefix .` - Change the prefix to .",
    "tracking": "`{p}tracking off` - Stop tracking streams in this server",
}


class Help(commands.Cog):
    def __init__(self, bot: StreamBot):
        self.bot = bot

    async def _prefix(self, guild: discord.Guild | None) -> str:
        if guild is None or self.bot.guild_configs is None:
            return BotConfig.DEFAULT_PREFIX
        try:
            return await self.bot.guild_configs.get_prefix(guild.id)
        except StoreUnavailable:
            return BotConfig.DEFAULT_PREFIX

    def _visible(self) -> dict[str, commands.Command]:
        return {
            cmd.name: cmd
            for cmd in self.bot.commands
            if not cmd.hidden and (cmd.cog is None or cmd.cog.qualified_name not in HIDDEN_COGS)
        }

    def general_embed(self, prefix: str) -> discord.Embed:
        visible = self._visible()
        embed = discord.Embed(
            title="Stream Tracker Help",
            description=f"Use `/help <command>` or `{prefix}help <command>` for details on a command.",
            color=INFO_COLOR,
        )
        listed: set[str] = set()
        for category, names in CATEGORIES.items():
            lines = [f"`{n}` - {visible[n].description or visible[n].help or ''}" for n in names if n in visible]
            listed.update(names)
            if lines:
                embed.add_field(name=category, value="\n".join(lines), inline=False)

        others = [f"`{n}` - {c.description or c.help or ''}" for n, c in visible.items() if n not in listed]
        if others:
            embed.add_field(name="📌 Other Commands", value="\n".join(others), inline=False)
        embed.set_footer(text=f"Prefix: {prefix}")
        return embed

    def command_embed(self, command: commands.Command, prefix: str) -> discord.Embed:
        embed = discord.Embed(
            title=f"Command: {command.name}",
            description=command.description or command.help or "No description available",
            color=INFO_COLOR,
        )
        usage = f"{prefix}{command.name} {command.signature}".strip()
        embed.add_field(name="Usage", value=f"`{usage}`", inline=False)
        if command.aliases:
            embed.add_field(name="Aliases", value=", ".join(f"`{a}`" for a in command.aliases), inline=False)
        if example := EXAMPLES.get(command.name):
            embed.add_field(name="Examples", value=example.format(p=prefix), inline=False)
        return embed

    @commands.hybrid_command(name="help", aliases=["h", "commands"], description="Show help for the bot's commands")
    @app_commands.describe(command="Get details about one command")
    async def help(self, ctx: commands.Context, command: str | None = None):
        prefix = await self._prefix(ctx.guild)
        if command is None:
            await ctx.send(embed=self.general_embed(prefix))
            return

        found = self.bot.get_command(command.lower().removeprefix(prefix))
        if found is None or found.name not in self._visible():
            await ctx.send(f"No command called `{command}`.", ephemeral=True)
            return
        await ctx.send(embed=self.command_embed(found, prefix))


async def setup(bot: StreamBot) -> None:
    await bot.add_cog(Help(bot))
