"""Scheduled and on-demand stream reports."""

from discord.ext import commands

from .cog import ReportsCog

__all__ = ["ReportsCog", "setup"]


async def setup(bot: commands.Bot) -> None:
    """Extension entry point."""
    await bot.add_cog(ReportsCog(bot))  # type: ignore[arg-type]
