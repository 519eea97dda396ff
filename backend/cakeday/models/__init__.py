"""Data models for the birthday scheduler."""

from .birthday import (
    DEFAULT_MESSAGE_WITH_YEAR,
    DEFAULT_MESSAGE_WITHOUT_YEAR,
    DEFAULT_TIMEZONE,
    ActiveBirthdayRole,
    GuildSettings,
    MemberBirthday,
)

__all__ = [
    "ActiveBirthdayRole",
    "DEFAULT_MESSAGE_WITH_YEAR",
    "DEFAULT_MESSAGE_WITHOUT_YEAR",
    "DEFAULT_TIMEZONE",
    "GuildSettings",
    "MemberBirthday",
]
