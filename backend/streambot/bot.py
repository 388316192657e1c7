"""
Stream tracker Discord bot
discord.py 2.x with hybrid (slash + prefix) commands
"""

from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from shared.database import DatabaseManager, PoolConfig
from shared.errors import StoreUnavailable
from shared.migrations.runner import MigrationRunner
from shared.repositories.guild_config import GuildConfigRepository
from shared.repositories.stream_activity import StreamActivityRepository
from streambot.config import ENV_PATH, BotConfig
from streambot.core import CommandCooldowns, CooldownActive, HealthCheckServer, setup_logging
from streambot.services import (
    DiscordNotificationSink,
    DiscordPresenceOracle,
    ReportAggregator,
    ReportScheduler,
    SessionRecovery,
    StreamTracker,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "There was an error executing this command!"


async def _resolve_prefix(bot: StreamBot, message: discord.Message) -> list[str]:
    prefix = BotConfig.DEFAULT_PREFIX
    if message.guild is not None and bot.guild_configs is not None:
        try:
            prefix = await bot.guild_configs.get_prefix(message.guild.id)
        except StoreUnavailable as e:
            logger.warning(f"Using default prefix for {message.guild.id}: {e}")
    return commands.when_mentioned_or(prefix)(bot, message)


class StreamBot(commands.Bot):
    """Composition root: owns the pool, repositories, services and caches."""

    initial_extensions = [
        "streambot.cogs.stream_tracking",
        "streambot.cogs.stats",
        "streambot.cogs.settings",
        "streambot.cogs.reports",
        "streambot.cogs.help",
        "streambot.cogs.admin",
    ]

    def __init__(self) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.voice_states = True

        super().__init__(
            command_prefix=_resolve_prefix,
            intents=intents,
            help_command=None,
        )

        self.db: DatabaseManager | None = None
        self.guild_configs: GuildConfigRepository | None = None
        self.tracker: StreamTracker | None = None
        self.sink: DiscordNotificationSink | None = None
        self.recovery: SessionRecovery | None = None
        self.scheduler: ReportScheduler | None = None
        self.aggregator: ReportAggregator | None = None
        self.cooldowns = CommandCooldowns(
            cooldown=BotConfig.COMMAND_COOLDOWN,
            guild_per_minute=BotConfig.GUILD_COMMANDS_PER_MINUTE,
        )
        self.health_server = HealthCheckServer(self, port=BotConfig.PORT)
        # Set once crash recovery has finished; report loops wait on it
        self.recovery_done = asyncio.Event()

    async def setup_hook(self) -> None:
        await self.health_server.start()

        self.db = DatabaseManager(BotConfig.DATABASE_URL, PoolConfig.from_env())
        await self.db.connect()
        await MigrationRunner(self.db.pool).run_pending()

        activity_store = StreamActivityRepository(self.db.pool)
        self.guild_configs = GuildConfigRepository(self.db.pool, default_prefix=BotConfig.DEFAULT_PREFIX)
        self.tracker = StreamTracker(activity_store)
        self.sink = DiscordNotificationSink(self, self.guild_configs)
        self.recovery = SessionRecovery(
            self.tracker,
            DiscordPresenceOracle(self),
            self.sink,
            lookup_timeout=BotConfig.RECOVERY_LOOKUP_TIMEOUT,
        )
        self.aggregator = ReportAggregator(activity_store)
        self.scheduler = ReportScheduler(
            self.aggregator,
            self.guild_configs,
            self.sink,
            guild_timeout=BotConfig.REPORT_GUILD_TIMEOUT,
        )
        self.add_check(self.cooldowns.check)

        loaded, failed = [], []
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.rsplit(".", 1)[-1])
            except commands.ExtensionError as e:
                failed.append(f"{extension.rsplit('.', 1)[-1]} ({e})")
                logger.exception(f"Failed to load {extension}")

        if loaded:
            logger.info(f"Loaded cogs: {', '.join(loaded)}")
        if failed:
            logger.error(f"Failed cogs: {', '.join(failed)}")

        await self.sync_commands()

    async def sync_commands(self) -> str:
        """Sync slash commands to the test guild if configured, else globally."""
        if BotConfig.GUILD_ID:
            guild = discord.Object(id=int(BotConfig.GUILD_ID))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"Synced slash commands to guild {BotConfig.GUILD_ID}")
            return "synced to test guild"
        await self.tree.sync()
        logger.info("Synced slash commands globally")
        return "synced globally"

    async def on_ready(self) -> None:
        await self.change_presence(status=BotConfig.get_status(), activity=BotConfig.get_activity())
        logger.info(f"Bot ready: {self.user} (ID: {self.user.id if self.user else '?'})")
        logger.info(f"Connected to {len(self.guilds)} guild(s) | discord.py {discord.__version__}")

        if not self.owner_id:
            app_info = await self.application_info()
            self.owner_id = app_info.owner.id

        # on_ready fires again after reconnects; recovery is a startup-only pass
        if self.recovery_done.is_set() or self.recovery is None:
            return
        try:
            await self.recovery.reconcile()
        except StoreUnavailable as e:
            logger.error(f"Crash recovery skipped, store unavailable: {e}")
        finally:
            self.recovery_done.set()

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.HybridCommandError):
            error = error.original  # type: ignore[assignment]

        if isinstance(error, CooldownActive):
            await ctx.send(str(error), ephemeral=True)
            return
        if isinstance(getattr(error, "original", None), StoreUnavailable):
            logger.warning(f"Store unavailable during {ctx.command}: {error.original}")  # type: ignore[attr-defined]
            await ctx.send("Stream data is temporarily unavailable, try again shortly.", ephemeral=True)
            return
        if isinstance(error, commands.MissingPermissions):
            await ctx.send("You don't have permission to use this command.", ephemeral=True)
            return
        if isinstance(error, commands.NoPrivateMessage):
            await ctx.send("This command can only be used in a server.", ephemeral=True)
            return
        if isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(f"Missing required argument: `{error.param.name}`", ephemeral=True)
            return
        if isinstance(error, commands.BadArgument):
            await ctx.send(str(error), ephemeral=True)
            return
        if isinstance(error, commands.CheckFailure):
            await ctx.send("You can't use this command here.", ephemeral=True)
            return

        original = getattr(error, "original", error)
        logger.error(f"Command error in {ctx.command}: {original}", exc_info=original)
        try:
            await ctx.send(GENERIC_ERROR, ephemeral=True)
        except discord.HTTPException as e:
            logger.warning(f"Could not send error reply: {e}")

    async def close(self) -> None:
        await super().close()
        await self.health_server.stop()
        if self.db is not None:
            await self.db.disconnect()


async def main() -> None:
    """Bot entry point"""
    load_dotenv(dotenv_path=ENV_PATH, encoding="utf-8")
    BotConfig.load()
    setup_logging(BotConfig.LOG_LEVEL)

    missing = BotConfig.missing()
    if missing:
        logger.error(f"Missing required environment variable(s): {', '.join(missing)}")
        return

    async with StreamBot() as bot:
        try:
            await bot.start(BotConfig.TOKEN)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()
