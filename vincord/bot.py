"""
VinCord Discord client
discord.py 2.x with slash commands
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

from .config import Settings
from .core import GameHost, HealthCheckServer, Relay, RelayConfig

logger = logging.getLogger(__name__)


class VinCordClient(commands.Bot):
    """Discord side of the relay"""

    def __init__(self, host: GameHost, config: RelayConfig, settings: Settings):
        intents = discord.Intents.default()
        intents.message_content = True  # relay needs message text

        super().__init__(
            # commands.Bot requires a prefix; no prefix commands are registered and
            # on_message never dispatches them, so only slash commands exist.
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
            allowed_mentions=(
                discord.AllowedMentions.all()
                if config.allow_mentions
                else discord.AllowedMentions.none()
            ),
        )

        self.settings = settings
        self.relay = Relay(self, host, config, config_name=settings.vincord_config)
        self.health_server: HealthCheckServer | None = None

        self.initial_extensions = [
            "vincord.cogs.home",
            "vincord.cogs.world",
        ]

    async def setup_hook(self):
        """Start the relay, load cogs and sync slash commands"""
        await self.relay.start()

        loaded = []
        failed = []

        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                failed.append(f"{extension.split('.')[-1]} ({e})")

        if loaded:
            logger.info(f"Loaded cogs: {', '.join(loaded)}")
        if failed:
            logger.error(f"Failed to load: {', '.join(failed)}")

        guild_id = self.settings.discord_guild_id
        if guild_id:
            guild = discord.Object(id=guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"Slash commands synced to guild {guild_id}")
        else:
            await self.tree.sync()
            logger.info("Slash commands synced globally")

        if self.settings.health_port:
            self.health_server = HealthCheckServer(
                self, host=self.settings.health_host, port=self.settings.health_port
            )
            await self.health_server.start()

        logger.info("Connecting to Discord...")

    async def on_ready(self):
        logger.info(f"Bot ready: {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guilds | discord.py {discord.__version__}")
        await self.relay.on_connected()

    async def on_resumed(self):
        logger.info("Discord session resumed")
        await self.relay.on_connected()

    async def on_disconnect(self):
        self.relay.on_disconnected()

    async def on_message(self, message: discord.Message):
        """Hand every message to the relay; prefix commands are not processed"""
        self.relay.handle_remote_message(message)

    async def close(self):
        await self.relay.stop()
        if self.health_server is not None:
            await self.health_server.stop()
        await super().close()
