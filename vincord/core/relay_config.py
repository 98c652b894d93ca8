"""Relay configuration document (``VinCord.json``)"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_pascal

from .coords import BlockPos
from .host import DamageSource

if TYPE_CHECKING:
    from .host import GameHost

logger = logging.getLogger(__name__)

CONFIG_NAME = "VinCord.json"

DEFAULT_DEATH_MESSAGES: dict[DamageSource, str] = {
    DamageSource.BLOCK: "{0} was crushed by a block.",
    DamageSource.PLAYER: "{0} was killed by {1}.",
    DamageSource.ENTITY: "{0} was killed by {1}.",
    DamageSource.FALL: "{0} fell to their death.",
    DamageSource.DROWN: "{0} drowned.",
    DamageSource.EXPLOSION: "{0} blew up.",
    DamageSource.SUICIDE: "{0} died.",
    DamageSource.BLEED: "{0} bled out.",
    DamageSource.INTERNAL: "{0} succumbed to internal injuries.",
    DamageSource.MACHINE: "{0} got caught in a machine.",
    DamageSource.REVIVE: "{0} could not be revived.",
    DamageSource.VOID: "{0} fell into the void.",
    DamageSource.WEATHER: "{0} was struck down by the weather.",
    DamageSource.UNKNOWN: "{0} died mysteriously.",
}

DEFAULT_MONTH_MESSAGES: dict[int, str] = {
    1: "A new year begins.",
    3: "Spring has arrived.",
    6: "Summer has arrived.",
    9: "Autumn has arrived.",
    12: "Winter has arrived.",
}

DEFAULT_LOG_SCRAPE_REGEXES: dict[str, str] = {
    r"^Message to all in group 0: (A .* temporal storm is imminent)$": "$1",
    r"^Message to all in group 0: (The temporal storm seems to be waning)$": "$1",
}


class ConfigurationError(Exception):
    """Configuration is missing something the relay cannot run without"""


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )


class ChannelOverride(_Document):
    discord_channel: int = Field(default=0, ge=0)
    chat_to_discord: bool = True
    chat_to_game: bool = True

    @property
    def is_set(self) -> bool:
        return self.discord_channel != 0


class RelayConfig(_Document):
    discord_token: str = ""
    default_channel: ChannelOverride = Field(default_factory=ChannelOverride)
    channel_overrides: dict[str, ChannelOverride] = Field(
        default_factory=lambda: {"gamegroupname": ChannelOverride()}
    )
    ignore_discord_users: list[str] = Field(default_factory=list)

    chat_message: str = "**{0}**: {1}"
    player_join_message: str = "{0} joined."
    player_leave_message: str = "{0} left."
    server_start_message: str = "Server started."
    server_shutdown_message: str = "Server shutdown."
    player_death_to_discord: bool = True
    death_messages: dict[DamageSource, str] = Field(
        default_factory=lambda: dict(DEFAULT_DEATH_MESSAGES)
    )
    allow_mentions: bool = False

    home_location: BlockPos | None = None
    default_nickname: str = ""
    min_presence_interval: float = Field(default=30.0, gt=0)

    month_messages: dict[int, str] = Field(default_factory=lambda: dict(DEFAULT_MONTH_MESSAGES))
    full_moon_message: str = "The full moon rises."
    waning_moon_message: str = "The moon begins to wane."
    calendar_paused_message: str = "The calendar is paused while nobody is online."
    calendar_resumed_message: str = "The calendar resumes."

    log_scrape_regexes: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_LOG_SCRAPE_REGEXES)
    )

    outbound_queue_size: int = Field(default=100, gt=0)
    shutdown_timeout: float = Field(default=10.0, gt=0)

    def resolve_token(self, override: str = "") -> str:
        return override or self.discord_token

    def validate_for_startup(self, token: str) -> None:
        """Raise ConfigurationError when the relay cannot start"""
        if not token:
            raise ConfigurationError(
                "DiscordToken is empty; set it in VinCord.json or DISCORD_BOT_TOKEN"
            )
        if not self.default_channel.is_set:
            raise ConfigurationError("DefaultChannel.DiscordChannel is not set")

    def death_template(self, source: DamageSource) -> str:
        return self.death_messages.get(source) or DEFAULT_DEATH_MESSAGES[source]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def load_relay_config(host: GameHost, name: str = CONFIG_NAME) -> RelayConfig:
    """Load the relay document from the host, storing defaults when absent"""
    document = host.load_mod_config(name)
    if document is None:
        config = RelayConfig()
        host.store_mod_config(name, config.to_document())
        logger.info(f"Created default configuration {name}")
        return config

    try:
        return RelayConfig.model_validate(document)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {name}: {e}") from e
