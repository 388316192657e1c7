"""Logging configuration"""

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("discord", "discord.http", "discord.gateway", "aiohttp", "asyncpg")


def setup_logging(level_name: str = "INFO") -> None:
    """Route all logging through a Rich handler at ``level_name``."""
    level = getattr(logging, level_name.upper(), logging.INFO)

    try:
        console = Console(
            force_terminal=sys.stdout.isatty(),
            width=120,
        )
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            tracebacks_width=120,
        )
        rich_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))

        logging.basicConfig(
            level=level,
            format="%(message)s",
            datefmt="[%Y-%m-%d %H:%M:%S]",
            handlers=[rich_handler],
            force=True,
        )
    except Exception as e:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            force=True,
        )
        logging.getLogger(__name__).warning(f"Rich logging setup failed: {e}, using standard logging")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
