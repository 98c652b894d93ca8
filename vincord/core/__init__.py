"""Core modules for the VinCord relay."""

from .coords import BlockPos, absolute_to_pretty, format_pretty, pretty_to_absolute, world_center
from .health_server import HealthCheckServer
from .host import (
    ChatEvent,
    DamageSource,
    DeathEvent,
    GameHost,
    HostEvent,
    LogEntry,
    PlayerEvent,
    Subscription,
    load_host,
)
from .log_scrape import LogScrapeFilter
from .logging import setup_logging
from .presence import PresenceTracker
from .relay import ChannelBinding, Relay
from .relay_config import ChannelOverride, ConfigurationError, RelayConfig, load_relay_config
from .world import CalendarReading, ClimateSample, MoonPhase

__all__ = [
    # Coordinates
    "BlockPos",
    "absolute_to_pretty",
    "format_pretty",
    "pretty_to_absolute",
    "world_center",
    # Host boundary
    "GameHost",
    "HostEvent",
    "Subscription",
    "ChatEvent",
    "PlayerEvent",
    "DeathEvent",
    "DamageSource",
    "LogEntry",
    "load_host",
    "CalendarReading",
    "ClimateSample",
    "MoonPhase",
    # Config
    "RelayConfig",
    "ChannelOverride",
    "ConfigurationError",
    "load_relay_config",
    # Relay
    "Relay",
    "ChannelBinding",
    "PresenceTracker",
    "LogScrapeFilter",
    # Services
    "HealthCheckServer",
    # Logging
    "setup_logging",
]
