"""Collaborator protocols the scheduler depends on.

The asyncpg repositories and the Discord platform adapter satisfy these
structurally; tests substitute in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from cakeday.models.birthday import ActiveBirthdayRole, GuildSettings, MemberBirthday


class ConfigurationProvider(Protocol):
    async def get_settings(self, guild_id: int) -> GuildSettings | None: ...

    async def list_setup_guilds(self) -> list[GuildSettings]: ...


class BirthdayRecordProvider(Protocol):
    async def list_guild_birthdays(self, guild_id: int) -> list[MemberBirthday]: ...


class RoleLifecycleStore(Protocol):
    async def upsert(
        self, guild_id: int, user_id: int, expires_at: datetime, assigned_at: datetime
    ) -> None: ...

    async def list_expired(self, now: datetime) -> list[ActiveBirthdayRole]: ...

    async def delete(self, guild_id: int, user_id: int) -> bool: ...

    async def list_active_user_ids(self, guild_id: int) -> set[int]: ...


@dataclass(frozen=True)
class MentionPolicy:
    """Who an outbound message is allowed to ping. ``@everyone`` never is."""

    users: tuple[int, ...] = field(default_factory=tuple)
    roles: bool = False


class RolePlatform(Protocol):
    """Outbound calls on the chat platform. Failures raise ``PlatformCallFailed``."""

    async def member_display_name(self, guild_id: int, user_id: int) -> str | None:
        """Display name, or ``None`` if the user is no longer a member."""
        ...

    async def member_has_role(self, guild_id: int, user_id: int, role_id: int) -> bool: ...

    async def grant_role(self, guild_id: int, user_id: int, role_id: int) -> None: ...

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> None: ...

    async def send_message(self, channel_id: int, text: str, mentions: MentionPolicy) -> None: ...
