"""
Home base and nickname commands
Each command reads or writes one relay config field
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ..core.coords import BlockPos, format_pretty, pretty_to_absolute

if TYPE_CHECKING:
    from ..bot import VinCordClient

logger = logging.getLogger(__name__)


class HomeCommands(commands.Cog):
    """Home location and default nickname"""

    def __init__(self, bot: VinCordClient):
        self.bot = bot
        self.relay = bot.relay

    @app_commands.command(name="home", description="Gets the home base location")
    async def home(self, interaction: discord.Interaction):
        home = self.relay.config.home_location
        if home is None:
            await interaction.response.send_message(
                "No home location has been set yet.", ephemeral=True
            )
            return

        coords = format_pretty(home, self.relay.world_center())
        await interaction.response.send_message(f"🏠 Home base: **{coords}**")

    @app_commands.command(
        name="sethome", description="Sets the home base location (use pretty coordinates from HUD)"
    )
    @app_commands.describe(
        x="X coordinate (pretty/HUD coordinate)",
        y="Y coordinate",
        z="Z coordinate (pretty/HUD coordinate)",
    )
    @app_commands.checks.has_permissions(administrator=True)
    async def set_home(self, interaction: discord.Interaction, x: int, y: int, z: int):
        absolute = pretty_to_absolute(BlockPos(x, y, z), self.relay.world_center())
        self.relay.config.home_location = absolute
        self.relay.save_config()

        logger.info(
            f"Home location set to pretty ({x}, {y}, {z}) / absolute "
            f"({absolute.x}, {absolute.y}, {absolute.z}) by {interaction.user}"
        )
        await interaction.response.send_message(f"✅ Home base set to: **({x}, {y}, {z})**")

    @app_commands.command(
        name="setnickname", description="Sets the bot's default nickname for presence updates"
    )
    @app_commands.describe(nickname="The base nickname to use (weather/moon info will be appended)")
    @app_commands.checks.has_permissions(administrator=True)
    async def set_nickname(self, interaction: discord.Interaction, nickname: str):
        self.relay.config.default_nickname = nickname
        self.relay.save_config()

        logger.info(f"Default nickname set to {nickname!r} by {interaction.user}")
        await interaction.response.send_message(f"✅ Default nickname set to: **{nickname}**")

    @app_commands.command(name="nickname", description="Gets the bot's current default nickname")
    async def nickname(self, interaction: discord.Interaction):
        nickname = self.relay.config.default_nickname
        if not nickname:
            await interaction.response.send_message(
                "No default nickname has been set. The bot's username will be used.",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(f"🏷️ Default nickname: **{nickname}**")

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ):
        if isinstance(error, app_commands.MissingPermissions):
            await interaction.response.send_message(
                "You need administrator permission for this command.", ephemeral=True
            )
            return
        logger.error(f"Command error: {error}", exc_info=error)


async def setup(bot: VinCordClient):
    await bot.add_cog(HomeCommands(bot))
