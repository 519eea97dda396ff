"""asyncpg repositories backing the scheduler's stores."""

from .active_role import ActiveRoleRepository
from .birthday import BirthdayRepository
from .guild_settings import GuildSettingsRepository

__all__ = [
    "ActiveRoleRepository",
    "BirthdayRepository",
    "GuildSettingsRepository",
]
