"""Display strings for relayed events"""

from __future__ import annotations

import re

from discord.utils import escape_markdown

from .host import DamageSource, DeathEvent
from .relay_config import RelayConfig

# "<strong>Alice:</strong> hello" -> "hello"
_CHAT_PREFIX = re.compile(r"^(?:<[^>]+>)?[^\s:<>]+:(?:</[^>]+>)? (?P<text>.*)$", re.DOTALL)

MISSING_KILLER = "null"


def strip_chat_prefix(text: str) -> str:
    """Drop the sender prefix the game already rendered into a chat line"""
    match = _CHAT_PREFIX.match(text)
    if match is None:
        return text
    return match.group("text")


def format_chat(config: RelayConfig, sender: str, text: str) -> str:
    return config.chat_message.format(escape_markdown(sender), strip_chat_prefix(text))


def format_join(config: RelayConfig, player_name: str) -> str:
    return config.player_join_message.format(escape_markdown(player_name))


def format_leave(config: RelayConfig, player_name: str) -> str:
    return config.player_leave_message.format(escape_markdown(player_name))


def format_death(config: RelayConfig, event: DeathEvent) -> str:
    """Render a death by cause.

    A death without a damage source counts as suicide.
    """
    source = event.source if event.source is not None else DamageSource.SUICIDE
    killer = event.killer_name if event.killer_name is not None else MISSING_KILLER
    template = config.death_template(source)
    return template.format(escape_markdown(event.player_name), escape_markdown(killer))


def format_server_start(config: RelayConfig) -> str:
    return config.server_start_message


def format_server_shutdown(config: RelayConfig) -> str:
    return config.server_shutdown_message


def format_remote_message(author: str, content: str) -> str:
    return f"[{author}]: {content}"
