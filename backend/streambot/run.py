"""Console entry point: ``streambot`` or ``python -m streambot.run``."""

import asyncio
import logging

from streambot.bot import main

logger = logging.getLogger(__name__)


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped manually")


if __name__ == "__main__":
    cli()
