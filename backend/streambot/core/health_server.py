"""HTTP health check server"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict
from typing import TYPE_CHECKING

from aiohttp import web

from streambot.config import BOT_NAME, BOT_VERSION

if TYPE_CHECKING:
    from streambot.bot import StreamBot

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 300


class HealthCheckServer:
    """Liveness and status endpoints for container orchestration"""

    def __init__(self, bot: StreamBot | None = None, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.bot = bot
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)

    def _ready(self) -> bool:
        return self.bot is not None and self.bot.is_ready()

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.json_response({"service": BOT_NAME, "version": BOT_VERSION, "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Always 200; ``ready`` reports whether the gateway session is up"""
        ready = self._ready()
        return web.json_response({"status": "healthy" if ready else "starting", "ready": ready})

    async def handle_status(self, request: web.Request) -> web.Response:
        bot = self.bot
        ready = self._ready()
        payload: dict = {
            "service": BOT_NAME,
            "version": BOT_VERSION,
            "uptime_seconds": int(time.time() - self._start_time),
            "ready": ready,
            "guilds": len(bot.guilds) if bot is not None and ready else 0,
            "database": False,
            "recovery": None,
            "reports": {},
        }
        if bot is not None:
            if bot.db is not None:
                payload["database"] = await bot.db.check_health()
            if bot.guild_configs is not None:
                cache = bot.guild_configs.cache
                payload["config_cache"] = {"fresh": cache.size, "stale": cache.stale_size}
            if bot.recovery is not None and bot.recovery.last_result is not None:
                payload["recovery"] = asdict(bot.recovery.last_result)
            if bot.scheduler is not None:
                payload["reports"] = {
                    kind.value: {
                        "ran_at": run.ran_at.isoformat(),
                        "delivered": len(run.delivered),
                        "failed": len(run.failed),
                    }
                    for kind, run in bot.scheduler.last_runs.items()
                }
        return web.json_response(payload)

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            uptime = int(time.time() - self._start_time)
            ready = self._ready()
            guilds = len(self.bot.guilds) if self.bot is not None and ready else 0
            logger.info(f"Heartbeat: uptime={uptime}s, ready={ready}, guilds={guilds}")

    async def start(self) -> None:
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()
            self._heartbeat_task = asyncio.create_task(self._heartbeat())
            logger.info(f"Health server started on {self.host}:{self.port}")
        except Exception as e:
            logger.exception(f"Failed to start health server: {e}")
            raise

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Health server stopped")
            except Exception as e:
                logger.exception(f"Error stopping health server: {e}")
