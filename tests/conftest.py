"""
Shared fixtures for the relay test suite.

- FakeHost: in-memory game server implementing the GameHost protocol
- Discord client/channel mocks specced against discord.py classes
- A started, connected Relay wired to both
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from types import SimpleNamespace
from unittest.mock import MagicMock

import discord
import pytest

from tests.fakes import BOT_USER_ID, DEFAULT_CHANNEL_ID, FakeHost, make_channel, settle
from vincord.core.relay import Relay
from vincord.core.relay_config import ChannelOverride, RelayConfig


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def config() -> RelayConfig:
    return RelayConfig(
        discord_token="token",
        default_channel=ChannelOverride(discord_channel=DEFAULT_CHANNEL_ID),
        channel_overrides={},
        ignore_discord_users=["Spammer"],
        # silenced so join/leave tests only see their own messages
        calendar_paused_message="",
        calendar_resumed_message="",
    )


@pytest.fixture
def channels() -> dict[int, MagicMock]:
    return {DEFAULT_CHANNEL_ID: make_channel(DEFAULT_CHANNEL_ID)}


@pytest.fixture
def default_channel(channels: dict[int, MagicMock]) -> MagicMock:
    return channels[DEFAULT_CHANNEL_ID]


@pytest.fixture
def client(channels: dict[int, MagicMock]) -> MagicMock:
    client = MagicMock(spec=discord.Client)
    client.user = SimpleNamespace(id=BOT_USER_ID, name="VinCord")
    client.get_channel.side_effect = channels.get
    client.fetch_channel.side_effect = discord.NotFound(
        SimpleNamespace(status=404, reason="Not Found"), "Unknown Channel"
    )
    return client


@pytest.fixture
async def relay(
    client: MagicMock, host: FakeHost, config: RelayConfig
) -> AsyncGenerator[Relay, None]:
    relay = Relay(client, host, config)
    await relay.start()
    await relay.on_connected()
    await settle(relay)
    yield relay
    await relay.stop()
