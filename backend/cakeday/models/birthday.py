"""Data models for the birthday tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DEFAULT_MESSAGE_WITH_YEAR = "{mention} has turned {new_age}, happy birthday!"
DEFAULT_MESSAGE_WITHOUT_YEAR = "Happy birthday {mention}!"
DEFAULT_TIMEZONE = "UTC"


@dataclass
class GuildSettings:
    """Guild-level birthday announcement settings."""

    guild_id: int
    channel_id: int | None = None
    role_id: int | None = None
    # Interpreted in each member's local time, not the guild's
    announcement_hour: int = 0
    message_with_year: str = DEFAULT_MESSAGE_WITH_YEAR
    message_without_year: str = DEFAULT_MESSAGE_WITHOUT_YEAR
    allow_role_mention: bool = False
    required_role_id: int | None = None
    default_timezone: str = DEFAULT_TIMEZONE
    setup_complete: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_required_fields(self) -> bool:
        """True iff channel, role and both templates are set."""
        return bool(
            self.channel_id
            and self.role_id
            and self.message_with_year
            and self.message_without_year
        )

    @property
    def is_schedulable(self) -> bool:
        """Whether the scheduler should process this guild."""
        return self.setup_complete and self.channel_id is not None and self.role_id is not None


@dataclass
class MemberBirthday:
    """A member's birthday within one guild. Day is not validated against month length."""

    guild_id: int
    user_id: int
    month: int
    day: int
    year: int | None = None
    timezone: str = DEFAULT_TIMEZONE
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ActiveBirthdayRole:
    """An outstanding birthday role grant that must be revoked at ``role_expires_at``."""

    guild_id: int
    user_id: int
    role_assigned_at: datetime
    role_expires_at: datetime
