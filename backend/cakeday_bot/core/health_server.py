"""HTTP health and status endpoints"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web

from cakeday.scheduler.loop import next_tick_at

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from cakeday.scheduler.loop import BirthdayScheduler

logger = logging.getLogger(__name__)


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


class HealthCheckServer:
    """Liveness and scheduler status over HTTP for the container platform"""

    def __init__(self, bot: Bot | None = None, host: str = "0.0.0.0", port: int = 8080) -> None:
        self.bot: Any = bot
        self.host = host
        self.port = port
        self.runner: web.AppRunner | None = None
        self.started_at = time.monotonic()
        self.app = web.Application()
        self.app.add_routes(
            [
                web.get("/health", self.handle_health),
                web.get("/status", self.handle_status),
                web.get("/ping", self.handle_ping),
            ]
        )

    @property
    def scheduler(self) -> BirthdayScheduler | None:
        return getattr(self.bot, "scheduler", None)

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness, always 200"""
        ready = self.bot is not None and self.bot.is_ready()
        return web.json_response(
            {"status": "healthy" if ready else "starting", "ready": ready},
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        """Bot and birthday scheduler status"""
        bot_ready = self.bot is not None and self.bot.is_ready()
        payload: dict[str, Any] = {
            "service": "cakeday",
            "bot_id": str(self.bot.user.id) if bot_ready and self.bot.user else None,
            "uptime_seconds": int(time.monotonic() - self.started_at),
            "guilds": len(self.bot.guilds) if bot_ready else 0,
            "database": None,
            "scheduler": None,
        }

        database = getattr(self.bot, "database", None)
        if database is not None:
            payload["database"] = "ok" if await database.check_health() else "unreachable"

        scheduler = self.scheduler
        if scheduler is not None:
            report = scheduler.last_report
            payload["scheduler"] = {
                "state": scheduler.state.value,
                "running": scheduler.is_running,
                "next_pass_at": _iso(next_tick_at(scheduler.clock.now(), scheduler.tick_seconds)),
                "last_pass": None
                if report is None
                else {
                    "started_at": _iso(report.started_at),
                    "finished_at": _iso(report.finished_at),
                    "guilds": report.guilds,
                    "announced": report.announced,
                    "revoked": report.revoked,
                    "errors": report.errors,
                },
            }
        return web.json_response(payload)

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def start(self) -> None:
        """Bind and serve; a bind failure aborts bot startup."""
        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()
        try:
            await web.TCPSite(runner, self.host, self.port).start()
        except OSError:
            await runner.cleanup()
            logger.exception(f"Health server could not bind {self.host}:{self.port}")
            raise
        self.runner = runner
        logger.info(f"Health server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        runner, self.runner = self.runner, None
        if runner is None:
            return
        try:
            await runner.cleanup()
        except Exception:
            logger.exception("Error stopping health server")
        else:
            logger.info("Health server stopped")
