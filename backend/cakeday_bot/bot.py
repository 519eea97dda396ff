"""
Cakeday Discord bot
discord.py 2.x client that hosts the birthday scheduler
"""

import asyncio
import logging

import asyncpg
import discord
from discord.ext import commands
from dotenv import load_dotenv

from cakeday.database import DatabaseManager
from cakeday.migrations import MigrationRunner
from cakeday_bot.config import ENV_FILE, BotSettings, get_settings
from cakeday_bot.core import HealthCheckServer, setup_logging

logger = logging.getLogger(__name__)

INITIAL_EXTENSIONS = [
    "cakeday_bot.cogs.birthday",
]


class CakedayBot(commands.Bot):
    """Cakeday Discord client"""

    def __init__(self, settings: BotSettings):
        intents = discord.Intents.default()
        intents.members = True  # member lookups and role changes

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )
        self.settings = settings
        self.database = DatabaseManager(settings.database_url)
        self.health_server = HealthCheckServer(self, host=settings.health_host, port=settings.port)

    @property
    def db_pool(self) -> asyncpg.Pool | None:
        try:
            return self.database.pool
        except RuntimeError:
            return None

    async def setup_hook(self) -> None:
        """Connect the database, migrate, then load cogs"""
        await self.health_server.start()
        await self.database.connect()
        await MigrationRunner(self.database.pool).run_pending()

        loaded = []
        failed = []
        for extension in INITIAL_EXTENSIONS:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                failed.append(f"{extension.split('.')[-1]} ({e})")
                logger.exception(f"Failed to load extension {extension}")

        if loaded:
            logger.info(f"Loaded cogs: {', '.join(loaded)}")
        if failed:
            logger.error(f"Failed to load: {', '.join(failed)}")

    async def on_ready(self) -> None:
        await self.change_presence(status=self.settings.status, activity=self.settings.activity)
        logger.info(f"Bot ready: {self.user} (ID: {self.user.id if self.user else '?'})")
        logger.info(f"Connected to {len(self.guilds)} guild(s) | discord.py {discord.__version__}")

    async def close(self) -> None:
        # Unloading the cog stops the scheduler after its in-flight pass
        for extension in list(self.extensions):
            try:
                await self.unload_extension(extension)
            except Exception as e:
                logger.warning(f"Error unloading {extension}: {e}")
        await super().close()
        await self.health_server.stop()
        await self.database.disconnect()


async def main() -> None:
    """Bot entry point"""
    load_dotenv(dotenv_path=ENV_FILE, encoding="utf-8")
    settings = get_settings()
    setup_logging(settings.log_level)

    async with CakedayBot(settings) as bot:
        try:
            await bot.start(settings.discord_bot_token)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()


def run() -> None:
    """Console-script entry point"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped manually")


if __name__ == "__main__":
    run()
