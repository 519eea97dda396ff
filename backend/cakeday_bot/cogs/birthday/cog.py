"""Birthday feature cog: hosts the scheduler and keeps stores in step with guild events."""

import asyncio
import logging

import discord
from discord.ext import commands

from cakeday.errors import StoreUnavailable
from cakeday.repositories import ActiveRoleRepository, BirthdayRepository, GuildSettingsRepository
from cakeday.scheduler import BirthdayScheduler
from cakeday_bot.platform import DiscordPlatform

from .constants import DB_CONNECT_DELAY, DB_CONNECT_RETRIES

logger = logging.getLogger(__name__)


class BirthdayCog(commands.Cog):
    """Birthday announcements and the temporary birthday role"""

    def __init__(self, bot: commands.Bot, tick_seconds: int = 3600, enabled: bool = True):
        self.bot = bot
        self.tick_seconds = tick_seconds
        self.enabled = enabled
        self.settings_repo: GuildSettingsRepository
        self.birthday_repo: BirthdayRepository
        self.active_roles: ActiveRoleRepository
        self.scheduler: BirthdayScheduler | None = None
        self._ready = False
        self._startup_task: asyncio.Task | None = None

    async def cog_load(self) -> None:
        # Non-blocking so the bot can connect while the database comes up
        self._startup_task = asyncio.create_task(self._start_with_retry())

    async def _start_with_retry(
        self, max_retries: int = DB_CONNECT_RETRIES, delay: float = DB_CONNECT_DELAY
    ) -> None:
        """Build repositories and the scheduler, retrying until the pool exists."""
        for attempt in range(1, max_retries + 1):
            try:
                pool = self.bot.db_pool  # type: ignore[attr-defined]
                if pool is None:
                    raise RuntimeError("Database pool not initialized on bot")
                self.settings_repo = GuildSettingsRepository(pool)
                self.birthday_repo = BirthdayRepository(pool)
                self.active_roles = ActiveRoleRepository(pool)
                self.scheduler = BirthdayScheduler(
                    config=self.settings_repo,
                    birthdays=self.birthday_repo,
                    store=self.active_roles,
                    platform=DiscordPlatform(self.bot),
                    tick_seconds=self.tick_seconds,
                )
                self.bot.scheduler = self.scheduler  # type: ignore[attr-defined]
                self._ready = True
                break
            except Exception as e:
                logger.warning(
                    f"Birthday setup failed ({attempt}/{max_retries}): {type(e).__name__}: {e}"
                )
                if attempt < max_retries:
                    await asyncio.sleep(delay)
        else:
            logger.error("Birthday cog failed to start after all retries")
            return

        if not self.enabled:
            logger.info("Birthday cog loaded (scheduler disabled)")
            return

        await self.bot.wait_until_ready()
        self.scheduler.start()
        logger.info("Birthday cog loaded")

    async def cog_unload(self) -> None:
        if self._startup_task and not self._startup_task.done():
            self._startup_task.cancel()
        if self.scheduler is not None:
            await self.scheduler.stop()

    # ==================== Events ====================

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        if not self._ready:
            return
        try:
            await self.birthday_repo.delete_birthday(member.guild.id, member.id)
            await self.active_roles.delete(member.guild.id, member.id)
        except StoreUnavailable as e:
            logger.error(f"Failed to clean up birthday of departed member {member.id}: {e}")

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        if not self._ready:
            return
        try:
            await self.active_roles.delete_guild(guild.id)
            await self.birthday_repo.delete_guild_birthdays(guild.id)
            await self.settings_repo.delete_settings(guild.id)
            logger.info(f"Removed birthday data for guild {guild.id}")
        except StoreUnavailable as e:
            logger.error(f"Failed to clean up birthday data for guild {guild.id}: {e}")
