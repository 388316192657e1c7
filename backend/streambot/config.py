"""Stream tracker bot configuration"""

import logging
import os
from pathlib import Path

import discord

from streambot import __version__

logger = logging.getLogger(__name__)

BOT_DIR = Path(__file__).parent
ENV_PATH = BOT_DIR / ".env"

BOT_NAME = "streambot"
BOT_VERSION = __version__


def _float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


class BotConfig:
    """Settings read from the environment once ``.env`` has been loaded."""

    TOKEN: str = ""
    DATABASE_URL: str = ""
    GUILD_ID: str = ""
    DEFAULT_PREFIX: str = "!"
    LOG_LEVEL: str = "INFO"
    PORT: int = 8080

    RECOVERY_LOOKUP_TIMEOUT: float = 10.0
    REPORT_GUILD_TIMEOUT: float = 60.0
    COMMAND_COOLDOWN: float = 3.0
    GUILD_COMMANDS_PER_MINUTE: int = 30

    STATUS: str = ""
    ACTIVITY_TYPE: str = ""
    ACTIVITY_NAME: str = "Streams"

    @classmethod
    def load(cls) -> None:
        """(Re)read every setting from ``os.environ``."""
        cls.TOKEN = os.getenv("DISCORD_BOT_TOKEN", "")
        cls.DATABASE_URL = os.getenv("DATABASE_URL", "")
        cls.GUILD_ID = os.getenv("DISCORD_GUILD_ID", "")
        cls.DEFAULT_PREFIX = os.getenv("DEFAULT_PREFIX", "!") or "!"
        cls.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        cls.PORT = int(_float("PORT", 8080))

        cls.RECOVERY_LOOKUP_TIMEOUT = _float("RECOVERY_LOOKUP_TIMEOUT", 10.0)
        cls.REPORT_GUILD_TIMEOUT = _float("REPORT_GUILD_TIMEOUT", 60.0)
        cls.COMMAND_COOLDOWN = _float("COMMAND_COOLDOWN", 3.0)
        cls.GUILD_COMMANDS_PER_MINUTE = int(_float("GUILD_COMMANDS_PER_MINUTE", 30))

        cls.STATUS = os.getenv("DISCORD_STATUS", "")
        cls.ACTIVITY_TYPE = os.getenv("DISCORD_ACTIVITY_TYPE", "")
        cls.ACTIVITY_NAME = os.getenv("DISCORD_ACTIVITY_NAME", "Streams")

    @classmethod
    def missing(cls) -> list[str]:
        """Names of required variables that are not set."""
        required = {"DISCORD_BOT_TOKEN": cls.TOKEN, "DATABASE_URL": cls.DATABASE_URL}
        return [name for name, value in required.items() if not value]

    @classmethod
    def get_status(cls) -> discord.Status:
        status_map = {
            "online": discord.Status.online,
            "idle": discord.Status.idle,
            "dnd": discord.Status.dnd,
            "invisible": discord.Status.invisible,
        }
        return status_map.get(cls.STATUS.lower(), discord.Status.online)

    @classmethod
    def get_activity(cls) -> discord.Activity | None:
        """Supports playing, listening, watching and competing; defaults to watching."""
        if not cls.ACTIVITY_NAME:
            return None

        activity_map = {
            "playing": discord.ActivityType.playing,
            "listening": discord.ActivityType.listening,
            "watching": discord.ActivityType.watching,
            "competing": discord.ActivityType.competing,
        }
        activity_type = activity_map.get(cls.ACTIVITY_TYPE.lower(), discord.ActivityType.watching)
        return discord.Activity(type=activity_type, name=cls.ACTIVITY_NAME)


BotConfig.load()
