"""Read-only views over the host's calendar and climate state"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .coords import BlockPos

if TYPE_CHECKING:
    from .host import GameHost

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class MoonPhase(str, Enum):
    EMPTY = "Empty"
    GROW1 = "Grow1"
    GROW2 = "Grow2"
    GROW3 = "Grow3"
    FULL = "Full"
    SHRINK1 = "Shrink1"
    SHRINK2 = "Shrink2"
    SHRINK3 = "Shrink3"


MOON_EMOJI: dict[MoonPhase, str] = {
    MoonPhase.EMPTY: "🌑",
    MoonPhase.GROW1: "🌒",
    MoonPhase.GROW2: "🌓",
    MoonPhase.GROW3: "🌔",
    MoonPhase.FULL: "🌕",
    MoonPhase.SHRINK1: "🌖",
    MoonPhase.SHRINK2: "🌗",
    MoonPhase.SHRINK3: "🌘",
}


@dataclass(frozen=True)
class CalendarReading:
    """One sample of the host calendar.

    ``time_acceleration`` is in-game seconds elapsed per real second; zero
    means the calendar is stopped.
    """

    hour_of_day: float
    day_of_year: int
    days_per_month: int
    year: int
    moon_phase: MoonPhase
    time_acceleration: float = 60.0

    @property
    def hour(self) -> int:
        return math.floor(self.hour_of_day)

    @property
    def minute(self) -> int:
        return math.floor(60 * (self.hour_of_day % 1))

    @property
    def day(self) -> int:
        return self.day_of_year % self.days_per_month + 1

    @property
    def month(self) -> int:
        return self.day_of_year // self.days_per_month + 1

    @property
    def display_year(self) -> int:
        return self.year + 1

    @property
    def month_abbreviation(self) -> str:
        return MONTH_ABBREVIATIONS[(self.month - 1) % len(MONTH_ABBREVIATIONS)]

    def clock(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class ClimateSample:
    """Climate at one position; humidity and fertility are worldgen values in 0..1"""

    temperature: float
    rainfall: float
    humidity: float | None = None
    fertility: float | None = None


def read_home_climate(host: GameHost, home: BlockPos | None) -> ClimateSample | None:
    """Climate at the configured home position, or None when no home is set"""
    if home is None:
        return None
    return host.climate_at(home)


def weather_emoji(climate: ClimateSample | None) -> str:
    if climate is None:
        return "❓"
    if climate.temperature < 0:
        return "🌨️" if climate.rainfall > 0.3 else "❄️"
    if climate.rainfall > 0.6:
        return "🌧️"
    if climate.rainfall > 0.3:
        return "🌦️"
    if climate.rainfall > 0.1:
        return "⛅"
    return "☀️"


def moon_emoji(phase: MoonPhase | None) -> str:
    if phase is None:
        return "🌚"
    return MOON_EMOJI.get(phase, "🌚")


def describe_weather(climate: ClimateSample) -> str:
    t, rain = climate.temperature, climate.rainfall
    if t < -10:
        return "Freezing cold!"
    if t < 0:
        return "Snowy conditions" if rain > 0.3 else "Cold and clear"
    if t < 10:
        return "Cold and rainy" if rain > 0.5 else "Cool weather"
    if t < 20:
        return "Mild with rain" if rain > 0.5 else "Pleasant weather"
    if t < 30:
        return "Warm and rainy" if rain > 0.5 else "Warm and sunny"
    return "Hot and humid" if rain > 0.3 else "Hot and dry"
