"""Bot configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path

import discord
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BOT_DIR = Path(__file__).parent
BACKEND_DIR = BOT_DIR.parent
ENV_FILE = BACKEND_DIR / ".env"


class BotSettings(BaseSettings):
    """Bot settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Discord
    discord_bot_token: str = Field(..., description="Discord bot token")
    discord_status: str = Field(default="online", description="Presence status")
    discord_activity_name: str = Field(default="", description="'Watching' activity text")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Scheduler
    scheduler_enabled: bool = Field(default=True, description="Run the birthday loop")
    scheduler_tick_seconds: int = Field(
        default=3600, ge=60, description="Aligned tick period of the birthday loop"
    )

    # Health server
    health_host: str = Field(default="0.0.0.0", description="Health server host")
    port: int = Field(default=8080, description="Health server port")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL is a PostgreSQL DSN"""
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must start with 'postgresql://' or 'postgres://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def status(self) -> discord.Status:
        status_map = {
            "online": discord.Status.online,
            "idle": discord.Status.idle,
            "dnd": discord.Status.dnd,
            "invisible": discord.Status.invisible,
        }
        return status_map.get(self.discord_status.lower(), discord.Status.online)

    @property
    def activity(self) -> discord.Activity | None:
        if not self.discord_activity_name:
            return None
        return discord.Activity(type=discord.ActivityType.watching, name=self.discord_activity_name)


@lru_cache
def get_settings() -> BotSettings:
    """Get cached settings instance"""
    return BotSettings()  # type: ignore[call-arg]
