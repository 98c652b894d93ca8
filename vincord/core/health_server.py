"""HTTP health check server"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from ..bot import VinCordClient

logger = logging.getLogger(__name__)


class HealthCheckServer:
    """HTTP server reporting bot and relay health"""

    def __init__(self, bot: VinCordClient, host: str = "0.0.0.0", port: int = 8080):
        self.bot = bot
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._setup_routes()

    def _setup_routes(self):
        """Register routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/ping", self.handle_ping)

    async def handle_root(self, request):
        """Root endpoint - service info and relay counters"""
        ready = self.bot.is_ready()
        return web.json_response({
            "service": "VinCord relay",
            "status": "running",
            "bot_ready": ready,
            "latency_ms": round(self.bot.latency * 1000, 2) if ready else None,
            "relay": self.bot.relay.status(),
        })

    async def handle_health(self, request):
        """Health check - 200 once connected and bindings are live, 503 otherwise"""
        if self.bot.is_ready() and self.bot.relay.connected:
            return web.json_response({
                "status": "healthy",
                "bot_ready": True,
                "latency_ms": round(self.bot.latency * 1000, 2),
            })
        return web.json_response({"status": "starting", "bot_ready": False}, status=503)

    async def handle_ping(self, request):
        """Ping endpoint - plain-text pong"""
        return web.Response(text="pong")

    async def start(self):
        """Start health check server"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info(f"HTTP server started on {self.host}:{self.port}")

    async def stop(self):
        """Stop health check server"""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("HTTP server stopped")
