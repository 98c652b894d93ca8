"""
World information commands: players, time, weather
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ..core.coords import format_pretty
from ..core.world import ClimateSample, describe_weather, weather_emoji

if TYPE_CHECKING:
    from ..bot import VinCordClient

logger = logging.getLogger(__name__)


def weather_color(climate: ClimateSample) -> discord.Color:
    if climate.temperature < 0:
        return discord.Color.from_rgb(135, 206, 235)  # cold
    if climate.rainfall > 0.5:
        return discord.Color.from_rgb(70, 130, 180)  # rain
    if climate.temperature > 25:
        return discord.Color.from_rgb(255, 165, 0)  # hot
    return discord.Color.from_rgb(50, 205, 50)


def climate_footer(climate: ClimateSample) -> str | None:
    parts = []
    if climate.humidity is not None:
        parts.append(f"Humidity: {climate.humidity * 100:.0f}%")
    if climate.fertility is not None:
        parts.append(f"Fertility: {climate.fertility * 100:.0f}%")
    return " • ".join(parts) or None


class WorldCommands(commands.Cog):
    """Read-only views of the game world"""

    def __init__(self, bot: VinCordClient):
        self.bot = bot
        self.relay = bot.relay

    @app_commands.command(name="players", description="Shows online players")
    async def players(self, interaction: discord.Interaction):
        players = self.relay.host.online_players()
        if not players:
            await interaction.response.send_message("No players are currently online.")
            return

        embed = discord.Embed(
            title=f"🎮 Online Players ({len(players)})", color=discord.Color.green()
        )
        for name in players[:25]:  # embed field limit
            embed.add_field(name=name, value="Online", inline=True)

        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="time", description="Shows the current in-game time")
    async def time(self, interaction: discord.Interaction):
        calendar = self.relay.host.calendar()
        await interaction.response.send_message(
            f"🕐 In-game time: **{calendar.clock()}** "
            f"(Day {calendar.day_of_year + 1}, Year {calendar.display_year})"
        )

    @app_commands.command(name="weather", description="Shows the weather at the home location")
    async def weather(self, interaction: discord.Interaction):
        home = self.relay.config.home_location
        if home is None:
            await interaction.response.send_message(
                "No home location has been set. Use `/sethome` first.", ephemeral=True
            )
            return

        climate = self.relay.host.climate_at(home)
        if climate is None:
            await interaction.response.send_message(
                "Could not retrieve climate data for the home location.", ephemeral=True
            )
            return

        embed = discord.Embed(
            title=f"{weather_emoji(climate)} Weather at Home Base",
            description=describe_weather(climate),
            color=weather_color(climate),
        )
        embed.add_field(name="🌡️ Temperature", value=f"{climate.temperature:.1f}°C", inline=True)
        embed.add_field(name="💧 Rainfall", value=f"{climate.rainfall * 100:.0f}%", inline=True)
        embed.add_field(
            name="📍 Location", value=format_pretty(home, self.relay.world_center()), inline=True
        )
        footer = climate_footer(climate)
        if footer:
            embed.set_footer(text=footer)

        await interaction.response.send_message(embed=embed)


async def setup(bot: VinCordClient):
    await bot.add_cog(WorldCommands(bot))
