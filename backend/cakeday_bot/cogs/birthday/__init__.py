"""Birthday feature module."""

from discord.ext import commands

from cakeday_bot.config import get_settings

from .cog import BirthdayCog

__all__ = ["BirthdayCog", "setup"]


async def setup(bot: commands.Bot) -> None:
    """Extension entry point."""
    settings = get_settings()
    await bot.add_cog(
        BirthdayCog(
            bot,
            tick_seconds=settings.scheduler_tick_seconds,
            enabled=settings.scheduler_enabled,
        )
    )
