"""
VinCord launcher

    VINCORD_HOST=mymod.bridge:create_host python -m vincord
"""

import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env before settings and logging read the environment
load_dotenv(dotenv_path=Path.cwd() / ".env", encoding="utf-8")

from .bot import VinCordClient  # noqa: E402
from .config import get_settings  # noqa: E402
from .core import ConfigurationError, load_host, load_relay_config, setup_logging  # noqa: E402

logger = logging.getLogger("vincord")


async def main() -> int:
    """Relay entry point"""
    settings = get_settings()
    setup_logging(settings.log_level)

    if not settings.vincord_host:
        logger.error("VINCORD_HOST is not set (expected 'package.module:factory')")
        return 1

    host = load_host(settings.vincord_host)
    try:
        config = load_relay_config(host, settings.vincord_config)
        token = config.resolve_token(settings.discord_bot_token)
        config.validate_for_startup(token)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    async with VinCordClient(host, config, settings) as bot:
        try:
            await bot.start(token)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Relay stopped manually")


if __name__ == "__main__":
    run()
