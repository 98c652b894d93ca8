"""Tests for the Discord client wiring"""

from unittest.mock import AsyncMock, MagicMock

import discord

from tests.fakes import FakeHost
from vincord.bot import VinCordClient
from vincord.config import Settings
from vincord.core.relay_config import RelayConfig


def make_bot() -> VinCordClient:
    return VinCordClient(FakeHost(), RelayConfig(), Settings(_env_file=None))


class TestMessageRouting:
    async def test_messages_go_to_relay_only(self):
        bot = make_bot()
        bot.relay = MagicMock()
        bot.process_commands = AsyncMock()
        message = MagicMock(spec=discord.Message)

        await bot.on_message(message)

        bot.relay.handle_remote_message.assert_called_once_with(message)
        bot.process_commands.assert_not_awaited()

    async def test_no_prefix_commands_registered(self):
        bot = make_bot()
        assert list(bot.commands) == []
        assert bot.help_command is None


class TestConnectionEvents:
    async def test_disconnect_and_resume_reach_relay(self):
        bot = make_bot()
        bot.relay = MagicMock()
        bot.relay.on_connected = AsyncMock()

        await bot.on_disconnect()
        await bot.on_resumed()

        bot.relay.on_disconnected.assert_called_once_with()
        bot.relay.on_connected.assert_awaited_once_with()
