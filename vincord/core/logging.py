"""Logging configuration"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# Library loggers that are chatty at INFO; the relay's own loggers stay at the root level.
NOISY_LOGGERS = ("discord", "discord.http", "discord.gateway", "aiohttp.access")


def _rich_handler() -> RichHandler:
    handler = RichHandler(
        console=Console(width=120),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_width=120,
    )
    handler.setFormatter(logging.Formatter(fmt="%(name)s: %(message)s", datefmt="[%X]"))
    return handler


def setup_logging(level_name: str | None = None) -> None:
    """Route all logging through Rich at ``level_name`` (default: $LOG_LEVEL or INFO)"""
    level_name = level_name or os.getenv("LOG_LEVEL", "INFO")
    level = getattr(logging, level_name.upper(), logging.INFO)

    try:
        logging.basicConfig(
            level=level, format="%(message)s", handlers=[_rich_handler()], force=True
        )
    except Exception as e:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )
        logging.getLogger(__name__).warning(f"Rich logging unavailable ({e}), using plain output")

    quiet = max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
