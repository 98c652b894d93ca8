"""Boundary between the relay and the game server that hosts it.

The game server is supplied by the hosting process as an object satisfying
:class:`GameHost`. Event handlers registered through :meth:`GameHost.subscribe`
may be invoked from any thread; read accessors (calendar, roster, climate)
must be safe to call from the relay's event loop thread.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from .coords import BlockPos
from .world import CalendarReading, ClimateSample


class HostEvent(str, Enum):
    CHAT = "chat"
    PLAYER_JOIN = "player_join"
    PLAYER_LEAVE = "player_leave"
    PLAYER_DEATH = "player_death"
    SERVER_RUNNING = "server_running"
    SERVER_SHUTDOWN = "server_shutdown"
    LOG_ENTRY = "log_entry"


class DamageSource(str, Enum):
    BLOCK = "Block"
    PLAYER = "Player"
    ENTITY = "Entity"
    FALL = "Fall"
    DROWN = "Drown"
    EXPLOSION = "Explosion"
    SUICIDE = "Suicide"
    BLEED = "Bleed"
    INTERNAL = "Internal"
    MACHINE = "Machine"
    REVIVE = "Revive"
    VOID = "Void"
    WEATHER = "Weather"
    UNKNOWN = "Unknown"


@dataclass
class ChatEvent:
    """A chat line typed in game.

    ``consumed`` mirrors the host's flag; the relay only reads it.
    """

    sender: str
    text: str
    group_id: int
    consumed: bool = False


@dataclass(frozen=True)
class PlayerEvent:
    player_name: str


@dataclass(frozen=True)
class DeathEvent:
    player_name: str
    source: DamageSource | None = None
    killer_name: str | None = None


@dataclass(frozen=True)
class LogEntry:
    level: str
    message_format: str
    args: tuple[Any, ...] = field(default_factory=tuple)


@runtime_checkable
class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class GameHost(Protocol):
    global_group_id: int

    def subscribe(self, event: HostEvent, handler: Callable[..., None]) -> Subscription: ...

    def broadcast(self, message: str, group_id: int | None = None) -> None:
        """Send a notification-class message to one group, or all when None"""
        ...

    def resolve_group(self, name: str) -> int | None: ...

    def online_players(self) -> list[str]: ...

    def calendar(self) -> CalendarReading: ...

    def climate_at(self, pos: BlockPos) -> ClimateSample | None: ...

    def map_size(self) -> tuple[int, int]: ...

    def load_mod_config(self, name: str) -> dict[str, Any] | None: ...

    def store_mod_config(self, name: str, document: dict[str, Any]) -> None: ...


def load_host(path: str) -> GameHost:
    """Build the host from a ``"package.module:factory"`` path"""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Host factory must look like 'module:callable', got {path!r}")

    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    return factory()
