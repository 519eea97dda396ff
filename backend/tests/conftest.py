from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from unittest import mock

import pytest

from cakeday.errors import PlatformCallFailed, StoreUnavailable
from cakeday.models.birthday import ActiveBirthdayRole, GuildSettings, MemberBirthday
from cakeday.scheduler.interfaces import MentionPolicy

GUILD_ID = 1000
CHANNEL_ID = 2000
ROLE_ID = 3000
REQUIRED_ROLE_ID = 3001
USER_ID = 4000


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now


class InMemoryConfig:
    def __init__(self, *settings: GuildSettings) -> None:
        self.settings = {s.guild_id: s for s in settings}
        self.unavailable = False

    async def get_settings(self, guild_id: int) -> GuildSettings | None:
        if self.unavailable:
            raise StoreUnavailable("config store down")
        return self.settings.get(guild_id)

    async def list_setup_guilds(self) -> list[GuildSettings]:
        if self.unavailable:
            raise StoreUnavailable("config store down")
        return [s for s in self.settings.values() if s.setup_complete]


class InMemoryBirthdays:
    def __init__(self, *records: MemberBirthday) -> None:
        self.records = list(records)
        self.unavailable_guilds: set[int] = set()

    async def list_guild_birthdays(self, guild_id: int) -> list[MemberBirthday]:
        if guild_id in self.unavailable_guilds:
            raise StoreUnavailable(f"birthdays for {guild_id} unavailable")
        return [r for r in self.records if r.guild_id == guild_id]


class InMemoryRoleStore:
    """Dict-backed role-lifecycle store; survives "restarts" by being reused."""

    def __init__(self) -> None:
        self.rows: dict[tuple[int, int], ActiveBirthdayRole] = {}
        self.fail_upsert = False
        self.fail_delete = False
        self.fail_list = False

    async def upsert(
        self, guild_id: int, user_id: int, expires_at: datetime, assigned_at: datetime
    ) -> None:
        if self.fail_upsert:
            raise StoreUnavailable("upsert failed")
        self.rows[(guild_id, user_id)] = ActiveBirthdayRole(
            guild_id=guild_id,
            user_id=user_id,
            role_assigned_at=assigned_at,
            role_expires_at=expires_at,
        )

    async def list_expired(self, now: datetime) -> list[ActiveBirthdayRole]:
        if self.fail_list:
            raise StoreUnavailable("list failed")
        return [row for row in self.rows.values() if row.role_expires_at <= now]

    async def delete(self, guild_id: int, user_id: int) -> bool:
        if self.fail_delete:
            raise StoreUnavailable("delete failed")
        return self.rows.pop((guild_id, user_id), None) is not None

    async def list_active_user_ids(self, guild_id: int) -> set[int]:
        return {user_id for (g, user_id) in self.rows if g == guild_id}


class FakePlatform:
    """Records every outbound call; individual calls can be made to fail."""

    def __init__(self) -> None:
        self.members: dict[tuple[int, int], str] = {}
        self.roles: dict[tuple[int, int], set[int]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.messages: list[tuple[int, str, MentionPolicy]] = []
        self.fail: set[str] = set()

    def add_member(
        self, user_id: int, name: str = "Ayaka", guild_id: int = GUILD_ID, roles=()
    ) -> None:
        self.members[(guild_id, user_id)] = name
        self.roles[(guild_id, user_id)] = set(roles)

    def _maybe_fail(self, action: str, guild_id: int | None) -> None:
        if action in self.fail:
            raise PlatformCallFailed(action, guild_id, "simulated failure")

    async def member_display_name(self, guild_id: int, user_id: int) -> str | None:
        return self.members.get((guild_id, user_id))

    async def member_has_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        self.calls.append(("member_has_role", guild_id, user_id, role_id))
        return role_id in self.roles.get((guild_id, user_id), set())

    async def grant_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        self.calls.append(("grant_role", guild_id, user_id, role_id))
        self._maybe_fail("grant_role", guild_id)
        self.roles.setdefault((guild_id, user_id), set()).add(role_id)

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        self.calls.append(("revoke_role", guild_id, user_id, role_id))
        self._maybe_fail("revoke_role", guild_id)
        self.roles.setdefault((guild_id, user_id), set()).discard(role_id)

    async def send_message(self, channel_id: int, text: str, mentions: MentionPolicy) -> None:
        self.calls.append(("send_message", channel_id, text))
        self._maybe_fail("send_message", None)
        self.messages.append((channel_id, text, mentions))

    def actions(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeConnection:
    """Stands in for an asyncpg connection; configure the AsyncMocks per test."""

    def __init__(self) -> None:
        self.fetch = mock.AsyncMock(return_value=[])
        self.fetchrow = mock.AsyncMock(return_value=None)
        self.fetchval = mock.AsyncMock(return_value=None)
        self.execute = mock.AsyncMock(return_value="INSERT 0 1")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        yield


class FakePool:
    def __init__(self, conn: FakeConnection | None = None) -> None:
        self.conn = conn or FakeConnection()
        self.error: BaseException | None = None

    @asynccontextmanager
    async def acquire(self, timeout: float | None = None) -> AsyncIterator[FakeConnection]:
        if self.error is not None:
            raise self.error
        yield self.conn


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture()
def settings_with() -> Callable[..., GuildSettings]:
    def factory(**kwargs: Any) -> GuildSettings:
        values: dict[str, Any] = {
            "guild_id": GUILD_ID,
            "channel_id": CHANNEL_ID,
            "role_id": ROLE_ID,
            "announcement_hour": 9,
            "setup_complete": True,
        }
        values.update(kwargs)
        return GuildSettings(**values)

    return factory


@pytest.fixture()
def birthday_with() -> Callable[..., MemberBirthday]:
    def factory(**kwargs: Any) -> MemberBirthday:
        values: dict[str, Any] = {
            "guild_id": GUILD_ID,
            "user_id": USER_ID,
            "month": 3,
            "day": 15,
            "timezone": "America/New_York",
        }
        values.update(kwargs)
        return MemberBirthday(**values)

    return factory


@pytest.fixture()
def platform() -> FakePlatform:
    fake = FakePlatform()
    fake.add_member(USER_ID)
    return fake


@pytest.fixture()
def role_store() -> InMemoryRoleStore:
    return InMemoryRoleStore()


@pytest.fixture()
def fake_pool() -> FakePool:
    return FakePool()
