"""Relay between the game server and Discord.

Relay state (bindings, presence snapshot) belongs to the event loop running
the Discord client. Host callbacks arrive on the host's own threads and are
posted to an inbox; incoming Discord messages go through the same inbox. A
single consumer runs each work item to completion, so state is only ever
touched from one place at a time, and a failing item is logged without
affecting the next one.

Connect and disconnect run on the loop directly. Each one starts a new
session, and a binding rebuild that finishes under a stale session is
thrown away.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any

import discord

from .coords import world_center
from .formatting import (
    format_chat,
    format_death,
    format_join,
    format_leave,
    format_remote_message,
    format_server_shutdown,
    format_server_start,
)
from .host import ChatEvent, DeathEvent, GameHost, HostEvent, LogEntry, PlayerEvent
from .log_scrape import LogScrapeFilter, format_log_entry
from .outbound import OutboundQueue
from .presence import PresenceTracker, PresenceUpdate, presence_interval
from .relay_config import CONFIG_NAME, ChannelOverride, RelayConfig
from .world import CalendarReading, read_home_climate

logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@dataclass
class ChannelBinding:
    """A local chat group bound to a Discord channel.

    ``channel`` stays None when the Discord channel could not be resolved;
    such a binding drops traffic in both directions.
    """

    local_group: int
    settings: ChannelOverride
    channel: Any = None

    @property
    def channel_id(self) -> int:
        return self.settings.discord_channel

    @property
    def resolved(self) -> bool:
        return self.channel is not None

    @property
    def forwards_to_remote(self) -> bool:
        return self.resolved and self.settings.chat_to_discord

    @property
    def forwards_to_game(self) -> bool:
        return self.resolved and self.settings.chat_to_game


class Relay:
    def __init__(
        self,
        client: discord.Client,
        host: GameHost,
        config: RelayConfig,
        config_name: str = CONFIG_NAME,
    ):
        self.client = client
        self.host = host
        self.config = config
        self.config_name = config_name

        self.presence = PresenceTracker(config)
        self.log_filter = LogScrapeFilter(config.log_scrape_regexes)
        self.outbound: OutboundQueue | None = None

        self.bindings: dict[int, ChannelBinding] = {}
        self._by_channel: dict[int, list[ChannelBinding]] = {}
        self.connected = False
        # Bumped by every connect/disconnect; a rebuild started under an older
        # session is discarded.
        self._session = 0

        self._loop: asyncio.AbstractEventLoop | None = None
        self._inbox: asyncio.Queue[tuple[Callable[..., Any], tuple[Any, ...]]] | None = None
        self._tasks: list[asyncio.Task] = []
        self._background: set[asyncio.Task] = set()
        self._subscriptions = ExitStack()
        self._presence_task: asyncio.Task | None = None
        self._presence_lock = asyncio.Lock()
        self._pending_presence: PresenceUpdate | None = None
        self._presence_apply: asyncio.Task | None = None
        self._last_calendar: CalendarReading | None = None
        self._interval_clamped = False
        self._stopped = False

    # --- lifecycle ---

    async def start(self) -> None:
        """Start the consumers and subscribe to game events"""
        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self.outbound = OutboundQueue(self.config.outbound_queue_size, self.allowed_mentions())

        with ExitStack() as stack:
            for event, handler in self._game_handlers():
                subscription = self.host.subscribe(event, handler)
                stack.callback(subscription.unsubscribe)
            self._subscriptions = stack.pop_all()

        self.outbound.start()
        self._tasks.append(asyncio.create_task(self._process_inbox(), name="vincord-inbox"))
        logger.info("Relay started")

    async def on_connected(self) -> None:
        """Discord session is ready (first connect or after a reconnect)"""
        self._session += 1
        if not await self.rebuild_bindings(self._session):
            return
        self.connected = True
        if self._presence_task is None and not self._stopped:
            self._presence_task = asyncio.create_task(
                self._presence_loop(), name="vincord-presence"
            )
            self._tasks.append(self._presence_task)

    def on_disconnected(self) -> None:
        """Discord session lost; drop bindings until the next ready/resume"""
        self._session += 1
        if self.connected:
            logger.warning("Disconnected from Discord; relaying paused until reconnect")
        self.connected = False
        self.bindings = {}
        self._by_channel = {}

    async def stop(self) -> None:
        """Stop accepting events and cancel the consumers; queued work is dropped"""
        if self._stopped:
            return
        self._stopped = True
        self._session += 1
        self.release_subscriptions()
        self.connected = False

        for task in self._tasks:
            task.cancel()
        # shutdown() may itself be running as a background task
        background = [t for t in self._background if t is not asyncio.current_task()]
        for task in background:
            task.cancel()
        await asyncio.gather(*self._tasks, *background, return_exceptions=True)
        self._tasks.clear()
        self._presence_task = None
        self._presence_apply = None
        self._pending_presence = None

        if self.outbound is not None:
            await self.outbound.stop()

        self.bindings = {}
        self._by_channel = {}
        logger.info("Relay stopped")

    async def shutdown(self) -> None:
        """Server is going down: unsubscribe, say goodbye, log out"""
        self.release_subscriptions()

        binding = self.bindings.get(self.host.global_group_id)
        if binding is not None and binding.forwards_to_remote and self.outbound is not None:
            try:
                await asyncio.wait_for(
                    self.outbound.send_now(binding.channel, format_server_shutdown(self.config)),
                    timeout=self.config.shutdown_timeout,
                )
            except (asyncio.TimeoutError, discord.HTTPException) as e:
                logger.warning(f"Could not send shutdown message: {e!r}")

        await self.stop()
        await self.client.close()

    def release_subscriptions(self) -> None:
        """Unsubscribe from all game events, newest first"""
        try:
            self._subscriptions.close()
        except Exception:
            logger.exception("Error while unsubscribing from game events")

    async def wait_idle(self) -> None:
        """Wait until everything posted so far has been handled and sent"""
        if self._inbox is not None:
            await self._inbox.join()
        if self.outbound is not None:
            await self.outbound.join()

    # --- channel bindings ---

    async def rebuild_bindings(self, session: int | None = None) -> bool:
        """Resolve every configured channel and install the new binding table.

        Returns False without touching the current table when ``session`` is
        no longer current by the time the channels are resolved.
        """
        bindings: dict[int, ChannelBinding] = {}
        default = ChannelBinding(self.host.global_group_id, self.config.default_channel)
        bindings[default.local_group] = default

        for group_name, override in self.config.channel_overrides.items():
            if not override.is_set:
                continue
            group_id = self.host.resolve_group(group_name)
            if group_id is None:
                logger.warning(f"Unknown game chat group {group_name!r}, override ignored")
                continue
            bindings[group_id] = ChannelBinding(group_id, override)

        by_channel: dict[int, list[ChannelBinding]] = {}
        for binding in bindings.values():
            binding.channel = await self._resolve_channel(binding.channel_id)
            if binding.channel is None:
                logger.warning(f"Cannot resolve Discord channel {binding.channel_id}")
            by_channel.setdefault(binding.channel_id, []).append(binding)

        if session is not None and session != self._session:
            logger.debug("Connection state changed while resolving channels; bindings discarded")
            return False

        self.bindings = bindings
        self._by_channel = by_channel
        resolved = sum(1 for b in bindings.values() if b.resolved)
        logger.info(f"Channel bindings ready: {resolved}/{len(bindings)} resolved")
        return True

    async def _resolve_channel(self, channel_id: int) -> Any:
        """Cached channel, then a fetch; None unless it can receive messages"""
        channel = self.client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.client.fetch_channel(channel_id)
            except (discord.HTTPException, discord.InvalidData) as e:
                logger.debug(f"fetch_channel({channel_id}) failed: {e}")
                return None
        if not isinstance(channel, discord.abc.Messageable):
            return None
        return channel

    def allowed_mentions(self) -> discord.AllowedMentions:
        """Mention policy for relayed messages"""
        if self.config.allow_mentions:
            return discord.AllowedMentions.all()
        return discord.AllowedMentions.none()

    # --- work queue ---

    def _post(self, handler: Callable[..., Any], *args: Any) -> None:
        """Queue ``handler(*args)`` for the inbox consumer; safe from any thread"""
        loop, inbox = self._loop, self._inbox
        if loop is None or inbox is None or self._stopped:
            return
        item = (handler, args)
        if _running_loop() is loop:
            inbox.put_nowait(item)
            return
        try:
            loop.call_soon_threadsafe(inbox.put_nowait, item)
        except RuntimeError:
            logger.debug(f"Event loop closed, dropping {handler.__name__}")

    async def _process_inbox(self) -> None:
        """Run inbox items one at a time, isolating failures"""
        assert self._inbox is not None
        while True:
            handler, args = await self._inbox.get()
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error in relay handler {handler.__name__}")
            finally:
                self._inbox.task_done()

    def _spawn(self, coro: Any) -> asyncio.Task:
        """Start a tracked background task"""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background relay task failed", exc_info=task.exception())

    # --- game -> Discord ---

    def _game_handlers(self) -> list[tuple[HostEvent, Callable[..., None]]]:
        return [
            (HostEvent.CHAT, self._on_game_chat),
            (HostEvent.PLAYER_JOIN, self._on_player_join),
            (HostEvent.PLAYER_LEAVE, self._on_player_leave),
            (HostEvent.PLAYER_DEATH, self._on_player_death),
            (HostEvent.SERVER_RUNNING, self._on_server_running),
            (HostEvent.SERVER_SHUTDOWN, self._on_server_shutdown),
            (HostEvent.LOG_ENTRY, self._on_log_entry),
        ]

    def _on_game_chat(self, event: ChatEvent) -> None:
        if event.consumed:
            return
        self._post(self._forward_chat, event.group_id, event.sender, event.text)

    def _on_player_join(self, event: PlayerEvent) -> None:
        self._post(self._player_joined, event.player_name)

    def _on_player_leave(self, event: PlayerEvent) -> None:
        self._post(self._player_left, event.player_name)

    def _on_player_death(self, event: DeathEvent) -> None:
        self._post(self._player_died, event)

    def _on_server_running(self) -> None:
        self._post(self.forward_to_remote, format_server_start(self.config))

    def _on_log_entry(self, entry: LogEntry) -> None:
        # Runs on the host's logging thread; only matches reach the inbox.
        try:
            message = self.log_filter.match(format_log_entry(entry))
        except Exception:
            logger.exception("Log scrape failed")
            return
        if message:
            self._post(self.forward_to_remote, message)

    def _on_server_shutdown(self) -> None:
        """Blocks the host thread until Discord has logged out or the timeout passes"""
        loop = self._loop
        if loop is None or self._stopped:
            return
        if _running_loop() is loop:
            self._spawn(self.shutdown())
            return
        future = asyncio.run_coroutine_threadsafe(self.shutdown(), loop)
        try:
            future.result(timeout=self.config.shutdown_timeout)
        except TimeoutError:
            logger.warning("Timed out waiting for Discord logout")
        except Exception:
            logger.exception("Error during relay shutdown")

    def forward_to_remote(self, text: str, group_id: int | None = None) -> bool:
        """Queue ``text`` for the Discord channel bound to ``group_id``"""
        if group_id is None:
            group_id = self.host.global_group_id
        binding = self.bindings.get(group_id)
        if binding is None or not binding.forwards_to_remote or self.outbound is None:
            return False
        return self.outbound.submit(binding.channel, text)

    def _forward_chat(self, group_id: int, sender: str, text: str) -> None:
        self.forward_to_remote(format_chat(self.config, sender, text), group_id)

    def _player_joined(self, player_name: str) -> None:
        self.forward_to_remote(format_join(self.config, player_name))
        self._refresh_presence_soon(1)

    def _player_left(self, player_name: str) -> None:
        self.forward_to_remote(format_leave(self.config, player_name))
        self._refresh_presence_soon(-1)

    def _player_died(self, event: DeathEvent) -> None:
        """Forward a death message unless death forwarding is off"""
        if not self.config.player_death_to_discord:
            return
        self.forward_to_remote(format_death(self.config, event))

    # --- Discord -> game ---

    def handle_remote_message(self, message: discord.Message) -> None:
        """Entry point for every Discord message the client sees"""
        self._post(self._forward_to_game, message)

    def _forward_to_game(self, message: discord.Message) -> None:
        """Broadcast a Discord message to each game group bound to its channel"""
        bindings = self._by_channel.get(message.channel.id)
        if not bindings:
            return
        targets = [b for b in bindings if b.forwards_to_game]
        if not targets:
            return
        me = self.client.user
        if not self.connected or me is None:
            return
        if message.author.id == me.id:
            return
        if message.author.name in self.config.ignore_discord_users:
            return

        text = format_remote_message(message.author.name, message.content)
        for binding in targets:
            self.host.broadcast(text, binding.local_group)

    # --- presence ---

    def announce(self, text: str) -> None:
        """Send ``text`` to in-game chat and the default Discord channel"""
        self.host.broadcast(text)
        self.forward_to_remote(text)

    def base_nickname(self) -> str:
        """Configured nickname, else the bot's username"""
        if self.config.default_nickname:
            return self.config.default_nickname
        user = self.client.user
        return user.name if user is not None else "VinCord"

    def refresh_presence(self, adjust: int = 0) -> PresenceUpdate:
        """Observe the calendar and roster; announce transitions"""
        calendar = self.host.calendar()
        online = max(len(self.host.online_players()) + adjust, 0)
        climate = read_home_climate(self.host, self.config.home_location)
        update = self.presence.observe(calendar, online, climate, self.base_nickname())
        self._last_calendar = calendar
        for text in update.announcements:
            self.announce(text)
        return update

    def _refresh_presence_soon(self, adjust: int) -> None:
        """Observe now; publish the newest update once Discord is free"""
        self._pending_presence = self.refresh_presence(adjust)
        if self._presence_apply is None or self._presence_apply.done():
            self._presence_apply = self._spawn(self._apply_pending_presence())

    async def _apply_pending_presence(self) -> None:
        # Updates arriving while one is applied replace each other; only the latest is sent.
        while self._pending_presence is not None:
            update, self._pending_presence = self._pending_presence, None
            await self.apply_presence(update)

    async def apply_presence(self, update: PresenceUpdate) -> None:
        """Push nickname and custom status to Discord"""
        async with self._presence_lock:
            if not self.connected:
                return
            guild = self._guild()
            if guild is not None and guild.me.nick != update.nickname:
                try:
                    await guild.me.edit(nick=update.nickname)
                except discord.HTTPException as e:
                    logger.warning(f"Could not change nickname: {e}")
            try:
                await self.client.change_presence(
                    activity=discord.CustomActivity(name=update.label)
                )
            except discord.DiscordException as e:
                logger.warning(f"Could not update presence: {e}")

    def _guild(self) -> discord.Guild | None:
        """Guild of the default channel, where the nickname is set"""
        binding = self.bindings.get(self.host.global_group_id)
        if binding is None or not binding.resolved:
            return None
        return getattr(binding.channel, "guild", None)

    def next_presence_interval(self) -> float:
        """Seconds until the next presence tick"""
        acceleration = self._last_calendar.time_acceleration if self._last_calendar else 0.0
        interval, clamped = presence_interval(acceleration, self.config.min_presence_interval)
        if clamped and not self._interval_clamped:
            logger.warning(
                f"An in-game minute lasts {60 / acceleration:.2f}s, faster than "
                f"MinPresenceInterval; updating every {interval:.0f}s instead"
            )
        self._interval_clamped = clamped
        return interval

    async def _presence_loop(self) -> None:
        """Periodic presence refresh until cancelled"""
        while True:
            try:
                update = await self._run_in_inbox(self.refresh_presence)
                await self.apply_presence(update)
            except Exception:
                logger.exception("Presence update failed")
            await asyncio.sleep(self.next_presence_interval())

    async def _run_in_inbox(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run ``func`` on the inbox consumer and return its result"""
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def _call() -> None:
            if future.cancelled():
                return
            try:
                future.set_result(func(*args))
            except Exception as e:
                future.set_exception(e)

        self._post(_call)
        return await future

    # --- helpers for commands ---

    def world_center(self) -> tuple[int, int]:
        return world_center(*self.host.map_size())

    def save_config(self) -> None:
        """Persist the relay document through the host"""
        self.host.store_mod_config(self.config_name, self.config.to_document())

    def status(self) -> dict[str, Any]:
        """Counters for the health endpoint"""
        outbound = self.outbound
        return {
            "connected": self.connected,
            "bindings": len(self.bindings),
            "resolved_bindings": sum(1 for b in self.bindings.values() if b.resolved),
            "online_players": self.presence.snapshot.online,
            "sent": outbound.sent if outbound else 0,
            "dropped": outbound.dropped if outbound else 0,
            "failed": outbound.failed if outbound else 0,
        }
