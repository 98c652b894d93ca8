"""Fire-and-forget delivery of messages to Discord"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import discord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMessage:
    channel: Any
    content: str


class OutboundQueue:
    """Bounded send queue drained by a single consumer task.

    Producers never wait: a full queue drops the message. Failed sends are
    logged and dropped, never retried.
    """

    def __init__(self, maxsize: int, allowed_mentions: discord.AllowedMentions):
        self.allowed_mentions = allowed_mentions
        self._queue: asyncio.Queue[OutboundMessage] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self.sent = 0
        self.dropped = 0
        self.failed = 0

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._consume(), name="vincord-outbound")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def submit(self, channel: Any, content: str) -> bool:
        try:
            self._queue.put_nowait(OutboundMessage(channel, content))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Outbound queue full, dropping message: {content[:80]!r}")
            return False
        return True

    async def join(self) -> None:
        await self._queue.join()

    async def send_now(self, channel: Any, content: str) -> None:
        await channel.send(content, allowed_mentions=self.allowed_mentions)

    async def _consume(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.send_now(message.channel, message.content)
                self.sent += 1
            except discord.HTTPException as e:
                self.failed += 1
                logger.warning(f"Discord send failed ({e.status}): {e.text or e}")
            except Exception:
                self.failed += 1
                logger.exception("Unexpected error while sending to Discord")
            finally:
                self._queue.task_done()
