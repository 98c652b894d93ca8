"""Calendar announcements and the bot's status/nickname.

``PresenceTracker.observe`` is edge-triggered: month, moon and pause/resume
announcements fire once per transition and never on the first observation,
since at startup the previous state is unknown.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .relay_config import RelayConfig
from .world import CalendarReading, ClimateSample, MoonPhase, moon_emoji, weather_emoji

NICKNAME_MAX_LENGTH = 32


@dataclass
class PresenceSnapshot:
    online: int = 0
    last_month: int = 0
    last_moon: MoonPhase | None = None
    previous_online: int | None = None


@dataclass
class PresenceUpdate:
    label: str
    nickname: str
    announcements: list[str] = field(default_factory=list)


def presence_interval(time_acceleration: float, minimum: float) -> tuple[float, bool]:
    """Seconds between presence updates and whether the floor was applied.

    One update per in-game minute, but never faster than ``minimum``.
    """
    if time_acceleration <= 0:
        return minimum, False
    interval = 60 / time_acceleration
    if interval < minimum:
        return minimum, True
    return interval, False


def presence_label(
    calendar: CalendarReading, online: int, climate: ClimateSample | None
) -> str:
    label = (
        f"{online} online | {calendar.clock()}, {calendar.day}. "
        f"{calendar.month_abbreviation}, Y{calendar.display_year}"
    )
    if climate is not None:
        label += f" | {round(climate.temperature)}°C"
    return label


def presence_nickname(
    base_name: str, phase: MoonPhase, climate: ClimateSample | None, with_weather: bool
) -> str:
    suffix = moon_emoji(phase)
    if with_weather:
        suffix = f"{weather_emoji(climate)}|{suffix}"
    suffix = f" ({suffix})"
    return base_name[: NICKNAME_MAX_LENGTH - len(suffix)] + suffix


class PresenceTracker:
    def __init__(self, config: RelayConfig):
        self.config = config
        self.snapshot = PresenceSnapshot()

    def observe(
        self,
        calendar: CalendarReading,
        online: int,
        climate: ClimateSample | None,
        base_name: str,
    ) -> PresenceUpdate:
        announcements: list[str] = []
        snap = self.snapshot
        snap.online = online

        month = calendar.month
        if snap.last_month and month != snap.last_month:
            text = self.config.month_messages.get(month, "")
            if text:
                announcements.append(text)
        snap.last_month = month

        phase = calendar.moon_phase
        if snap.last_moon is not None and phase != snap.last_moon:
            if phase == MoonPhase.FULL:
                announcements.append(self.config.full_moon_message)
            elif snap.last_moon == MoonPhase.FULL:
                announcements.append(self.config.waning_moon_message)
        snap.last_moon = phase

        if snap.previous_online is not None:
            if snap.previous_online > 0 and online == 0:
                announcements.append(self.config.calendar_paused_message)
            elif snap.previous_online == 0 and online > 0:
                announcements.append(self.config.calendar_resumed_message)
        snap.previous_online = online

        with_weather = self.config.home_location is not None
        return PresenceUpdate(
            label=presence_label(calendar, online, climate if with_weather else None),
            nickname=presence_nickname(base_name, phase, climate, with_weather),
            announcements=[text for text in announcements if text],
        )
