"""
Tests for the relay core.

Covers both forwarding directions, the filters applied on the way, channel
binding resolution, handler isolation, presence publishing and shutdown.
"""

import asyncio
import logging
from types import SimpleNamespace
from unittest.mock import MagicMock

import discord
import pytest

from tests.fakes import (
    BOT_USER_ID,
    DEFAULT_CHANNEL_ID,
    FakeHost,
    make_calendar,
    make_channel,
    make_message,
    settle,
)
from vincord.core.host import ChatEvent, DamageSource, DeathEvent, HostEvent, LogEntry, PlayerEvent
from vincord.core.relay import ChannelBinding, Relay
from vincord.core.relay_config import ChannelOverride, RelayConfig
from vincord.core.world import MoonPhase


def sent_texts(channel: MagicMock) -> list[str]:
    return [c.args[0] for c in channel.send.await_args_list]


# =============================================================================
# DISCORD -> GAME
# =============================================================================


class TestRemoteToGame:
    async def test_ignored_user_is_dropped_and_others_forwarded(self, relay, host):
        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Spammer", "buy now"))
        await settle(relay)
        assert host.broadcasts == []

        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "hello"))
        await settle(relay)
        assert host.broadcasts == [("[Carol]: hello", host.global_group_id)]

    async def test_ignore_list_is_case_sensitive(self, relay, host):
        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "spammer", "hi"))
        await settle(relay)
        assert host.broadcasts == [("[spammer]: hi", 0)]

    async def test_own_messages_are_never_forwarded(self, relay, host, config):
        config.ignore_discord_users = []
        message = make_message(DEFAULT_CHANNEL_ID, "Carol", "echo", author_id=BOT_USER_ID)
        relay.handle_remote_message(message)
        await settle(relay)
        assert host.broadcasts == []

    async def test_unbound_channel_is_dropped(self, relay, host):
        relay.handle_remote_message(make_message(4242, "Carol", "hello"))
        await settle(relay)
        assert host.broadcasts == []

    async def test_chat_to_game_disabled(self, relay, host, config):
        config.default_channel.chat_to_game = False
        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "hello"))
        await settle(relay)
        assert host.broadcasts == []

    async def test_dropped_while_disconnected(self, relay, host):
        relay.on_disconnected()
        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "hello"))
        await settle(relay)
        assert host.broadcasts == []
        assert relay.bindings == {}

    async def test_reconnect_rebuilds_bindings(self, relay, host):
        relay.on_disconnected()
        await relay.on_connected()
        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "back"))
        await settle(relay)
        assert host.broadcasts == [("[Carol]: back", 0)]

    async def test_disconnect_during_rebuild_keeps_relay_offline(
        self, relay, host, client, channels
    ):
        """A disconnect while channels are being fetched wins over the pending rebuild"""
        gate, fetching = asyncio.Event(), asyncio.Event()
        channel = channels.pop(DEFAULT_CHANNEL_ID)

        async def slow_fetch(channel_id):
            fetching.set()
            await gate.wait()
            return channel

        client.fetch_channel.side_effect = slow_fetch
        relay.on_disconnected()

        reconnect = asyncio.create_task(relay.on_connected())
        await fetching.wait()
        relay.on_disconnected()
        gate.set()
        await reconnect

        assert relay.connected is False
        assert relay.bindings == {}
        assert relay.status()["connected"] is False

        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "lost"))
        await settle(relay)
        assert host.broadcasts == []

    async def test_overlapping_connects_keep_the_latest_bindings(
        self, relay, host, client, channels, default_channel
    ):
        """on_ready and on_resumed racing: the later rebuild is the one installed"""
        gate, fetching = asyncio.Event(), asyncio.Event()
        stale = make_channel(DEFAULT_CHANNEL_ID)

        async def slow_fetch(channel_id):
            fetching.set()
            await gate.wait()
            return stale

        client.fetch_channel.side_effect = slow_fetch
        del channels[DEFAULT_CHANNEL_ID]

        first = asyncio.create_task(relay.on_connected())
        await fetching.wait()
        channels[DEFAULT_CHANNEL_ID] = default_channel
        await relay.on_connected()
        gate.set()
        await first

        assert relay.connected is True
        assert relay.bindings[host.global_group_id].channel is default_channel

        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "hello"))
        await settle(relay)
        assert host.broadcasts == [("[Carol]: hello", 0)]


# =============================================================================
# GAME -> DISCORD
# =============================================================================


class TestGameToRemote:
    async def test_chat_is_forwarded_without_prefix(self, relay, host, default_channel):
        host.emit(HostEvent.CHAT, ChatEvent("Alice", "<strong>Alice:</strong> hi all", 0))
        await settle(relay)
        assert sent_texts(default_channel) == ["**Alice**: hi all"]

    async def test_consumed_chat_is_not_forwarded(self, relay, host, default_channel):
        host.emit(HostEvent.CHAT, ChatEvent("Alice", "Alice: secret", 0, consumed=True))
        await settle(relay)
        assert default_channel.send.await_count == 0

    async def test_chat_to_discord_disabled(self, relay, host, config, default_channel):
        config.default_channel.chat_to_discord = False
        host.emit(HostEvent.CHAT, ChatEvent("Alice", "Alice: hi", 0))
        await settle(relay)
        assert default_channel.send.await_count == 0

    async def test_mentions_policy(self, relay, host, default_channel):
        host.emit(HostEvent.CHAT, ChatEvent("Alice", "Alice: @everyone", 0))
        await settle(relay)
        mentions = default_channel.send.await_args.kwargs["allowed_mentions"]
        assert mentions.everyone is False

    async def test_join_leave_and_lifecycle(self, relay, host, default_channel):
        host.emit(HostEvent.SERVER_RUNNING)
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
        host.emit(HostEvent.PLAYER_LEAVE, PlayerEvent("Alice"))
        await settle(relay)
        assert sent_texts(default_channel) == ["Server started.", "Alice joined.", "Alice left."]

    async def test_death(self, relay, host, default_channel):
        host.emit(HostEvent.PLAYER_DEATH, DeathEvent("Alice", DamageSource.PLAYER, "Bob"))
        await settle(relay)
        assert sent_texts(default_channel) == ["Alice was killed by Bob."]

    async def test_death_forwarding_can_be_disabled(self, relay, host, config, default_channel):
        config.player_death_to_discord = False
        host.emit(HostEvent.PLAYER_DEATH, DeathEvent("Alice"))
        await settle(relay)
        assert default_channel.send.await_count == 0

    async def test_events_from_another_thread(self, relay, host, default_channel):
        await asyncio.to_thread(host.emit, HostEvent.PLAYER_JOIN, PlayerEvent("Dora"))
        await settle(relay)
        assert sent_texts(default_channel) == ["Dora joined."]

    async def test_log_scrape(self, relay, host, default_channel):
        storm = LogEntry(
            "Notification",
            "Message to all in group 0: {0}",
            ("A strong temporal storm is imminent",),
        )
        noise = LogEntry("Notification", "Saved world in {0}ms", (12,))
        await asyncio.to_thread(host.emit, HostEvent.LOG_ENTRY, noise)
        await asyncio.to_thread(host.emit, HostEvent.LOG_ENTRY, storm)
        await settle(relay)
        assert sent_texts(default_channel) == ["A strong temporal storm is imminent"]

    async def test_failing_handler_does_not_stop_relay(
        self, relay, host, config, default_channel, caplog
    ):
        config.chat_message = "{5}"
        with caplog.at_level(logging.ERROR):
            host.emit(HostEvent.CHAT, ChatEvent("Alice", "Alice: hi", 0))
            host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
            await settle(relay)
        assert sent_texts(default_channel) == ["Alice joined."]
        assert "_forward_chat" in caplog.text

    async def test_no_duplicate_suppression(self, relay, host, default_channel):
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
        await settle(relay)
        assert sent_texts(default_channel) == ["Alice joined.", "Alice joined."]


# =============================================================================
# CHANNEL BINDINGS
# =============================================================================


class TestBindings:
    @pytest.fixture
    def config(self, config):
        config.channel_overrides = {
            "trade": ChannelOverride(discord_channel=222, chat_to_discord=False),
            "unset": ChannelOverride(),
            "missing-group": ChannelOverride(discord_channel=333),
        }
        return config

    @pytest.fixture
    def host(self):
        host = FakeHost()
        host.groups = {"trade": 5, "unset": 6}
        return host

    @pytest.fixture
    def channels(self, channels):
        channels[222] = make_channel(222)
        return channels

    async def test_overrides_are_bound(self, relay):
        assert set(relay.bindings) == {0, 5}
        assert relay.bindings[5].resolved
        assert relay.bindings[5].forwards_to_game
        assert not relay.bindings[5].forwards_to_remote

    async def test_override_directions(self, relay, host, channels):
        host.emit(HostEvent.CHAT, ChatEvent("Alice", "Alice: selling", 5))
        relay.handle_remote_message(make_message(222, "Carol", "buying"))
        await settle(relay)
        assert channels[222].send.await_count == 0
        assert host.broadcasts == [("[Carol]: buying", 5)]

    async def test_chat_from_unbound_group_is_dropped(self, relay, host, channels):
        host.emit(HostEvent.CHAT, ChatEvent("Alice", "Alice: hi", 6))
        await settle(relay)
        assert all(c.send.await_count == 0 for c in channels.values())


class TestUnresolvedChannel:
    @pytest.fixture
    def channels(self):
        return {}

    async def test_unresolved_binding_drops_both_directions(self, relay, host, client):
        binding = relay.bindings[0]
        assert binding.resolved is False
        client.fetch_channel.assert_awaited_with(DEFAULT_CHANNEL_ID)

        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
        relay.handle_remote_message(make_message(DEFAULT_CHANNEL_ID, "Carol", "hello"))
        await settle(relay)
        assert host.broadcasts == []
        assert relay.outbound.sent == 0


# =============================================================================
# PRESENCE
# =============================================================================


class TestPresence:
    async def test_first_tick_publishes_status(self, relay, client, default_channel):
        await settle(relay)
        activity = client.change_presence.await_args.kwargs["activity"]
        assert isinstance(activity, discord.CustomActivity)
        assert activity.name.startswith("0 online | 12:00, 1. Jan, Y1")
        default_channel.guild.me.edit.assert_awaited_with(nick="VinCord (🌒)")

    async def test_month_change_is_announced_everywhere(self, relay, host, config, default_channel):
        config.month_messages = {2: "February!"}
        host.reading = make_calendar(month=2)
        relay.refresh_presence()
        await settle(relay)
        assert ("February!", None) in host.broadcasts
        assert "February!" in sent_texts(default_channel)

    async def test_join_counts_the_joining_player(self, relay, host, config):
        config.calendar_resumed_message = "RESUMED"
        host.players = []
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
        await settle(relay)
        assert relay.presence.snapshot.online == 1
        assert ("RESUMED", None) in host.broadcasts

    async def test_leave_counts_the_leaving_player(self, relay, host, config):
        config.calendar_paused_message = "PAUSED"
        host.players = ["Alice"]
        relay.refresh_presence()
        host.emit(HostEvent.PLAYER_LEAVE, PlayerEvent("Alice"))
        await settle(relay)
        assert relay.presence.snapshot.online == 0
        assert ("PAUSED", None) in host.broadcasts

    async def test_join_burst_publishes_only_latest_presence(
        self, relay, host, client, default_channel
    ):
        gate, editing = asyncio.Event(), asyncio.Event()

        async def slow_edit(**kwargs):
            editing.set()
            await gate.wait()

        default_channel.guild.me.edit.side_effect = slow_edit
        client.change_presence.reset_mock()

        host.players = []
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Alice"))
        await settle(relay)
        await editing.wait()

        host.players = ["Alice"]
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Bob"))
        await settle(relay)
        host.players = ["Alice", "Bob"]
        host.emit(HostEvent.PLAYER_JOIN, PlayerEvent("Carol"))
        await settle(relay)

        gate.set()
        await relay._presence_apply

        labels = [c.kwargs["activity"].name for c in client.change_presence.await_args_list]
        assert [label.split(" | ")[0] for label in labels] == ["1 online", "3 online"]

    async def test_nickname_unchanged_is_not_reapplied(self, relay, default_channel):
        update = relay.refresh_presence()
        default_channel.guild.me.nick = update.nickname
        default_channel.guild.me.edit.reset_mock()
        await relay.apply_presence(update)
        default_channel.guild.me.edit.assert_not_awaited()

    async def test_moon_phase_in_nickname(self, relay, host, config, default_channel):
        config.default_nickname = "Herald"
        host.reading = make_calendar(moon=MoonPhase.FULL)
        update = relay.refresh_presence()
        await relay.apply_presence(update)
        default_channel.guild.me.edit.assert_awaited_with(nick="Herald (🌕)")

    async def test_interval_clamp_warns_once(self, relay, host, caplog):
        host.reading = make_calendar(time_acceleration=60.0)
        relay.refresh_presence()
        with caplog.at_level(logging.WARNING):
            assert relay.next_presence_interval() == 30.0
            assert relay.next_presence_interval() == 30.0
        assert caplog.text.count("MinPresenceInterval") == 1


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestLifecycle:
    async def test_shutdown_from_host_thread(self, relay, host, client, default_channel):
        await asyncio.to_thread(host.emit, HostEvent.SERVER_SHUTDOWN)

        assert host.handlers[HostEvent.CHAT] == []
        assert host.unsubscribed[0] == HostEvent.LOG_ENTRY
        assert sent_texts(default_channel)[-1] == "Server shutdown."
        client.close.assert_awaited_once()

    async def test_events_after_stop_are_ignored(self, relay, host, default_channel):
        handler = host.handlers[HostEvent.PLAYER_JOIN][0]
        await relay.stop()
        handler(PlayerEvent("Alice"))
        await asyncio.sleep(0)
        assert default_channel.send.await_count == 0

    async def test_failed_subscription_releases_earlier_ones(self, client, config):
        host = FakeHost()
        host.fail_subscribe_on = HostEvent.PLAYER_DEATH
        relay = Relay(client, host, config)

        with pytest.raises(RuntimeError):
            await relay.start()

        assert all(not handlers for handlers in host.handlers.values())
        assert host.unsubscribed == [HostEvent.PLAYER_LEAVE, HostEvent.PLAYER_JOIN, HostEvent.CHAT]

    async def test_save_config_goes_through_host(self, relay, host, config):
        config.default_nickname = "Herald"
        relay.save_config()
        assert host.documents["VinCord.json"]["DefaultNickname"] == "Herald"

    async def test_status(self, relay):
        status = relay.status()
        assert status["connected"] is True
        assert status["resolved_bindings"] == 1


def test_allowed_mentions_follow_config(client):
    relay = Relay(client, FakeHost(), RelayConfig(allow_mentions=True))
    assert relay.allowed_mentions().everyone is True
    relay.config.allow_mentions = False
    assert relay.allowed_mentions().everyone is False


def test_channel_binding_flags():
    binding = ChannelBinding(0, ChannelOverride(discord_channel=1))
    assert not binding.forwards_to_remote
    binding.channel = SimpleNamespace()
    assert binding.forwards_to_remote and binding.forwards_to_game
