from datetime import timedelta

import pytest
import pytest_asyncio

from cakeday.scheduler.sweeper import ExpirySweeper
from conftest import GUILD_ID, ROLE_ID, USER_ID, FixedClock, InMemoryConfig, utc

ASSIGNED_AT = utc(2025, 3, 15, 13, 0)
EXPIRES_AT = ASSIGNED_AT + timedelta(hours=24)


@pytest.fixture()
def config(settings_with):
    return InMemoryConfig(settings_with())


@pytest_asyncio.fixture()
async def granted(role_store, platform):
    platform.add_member(USER_ID, roles=[ROLE_ID])
    await role_store.upsert(GUILD_ID, USER_ID, EXPIRES_AT, ASSIGNED_AT)
    return role_store


def sweeper_for(store, config, platform, now):
    return ExpirySweeper(store, config, platform, FixedClock(now))


@pytest.mark.asyncio
async def test_nothing_happens_before_expiry(granted, config, platform):
    sweeper = sweeper_for(granted, config, platform, ASSIGNED_AT + timedelta(hours=23))

    result = await sweeper.sweep()

    assert result.expired == 0
    assert platform.calls == []
    assert (GUILD_ID, USER_ID) in granted.rows


@pytest.mark.asyncio
async def test_expired_role_is_revoked_and_forgotten(granted, config, platform):
    sweeper = sweeper_for(granted, config, platform, EXPIRES_AT + timedelta(minutes=1))

    result = await sweeper.sweep()

    assert (result.expired, result.revoked, result.deleted) == (1, 1, 1)
    assert platform.calls == [("revoke_role", GUILD_ID, USER_ID, ROLE_ID)]
    assert ROLE_ID not in platform.roles[(GUILD_ID, USER_ID)]
    assert not granted.rows


@pytest.mark.asyncio
async def test_expiry_boundary_is_inclusive(granted, config, platform):
    result = await sweeper_for(granted, config, platform, EXPIRES_AT).sweep()

    assert result.revoked == 1


@pytest.mark.asyncio
async def test_explicit_now_overrides_clock(granted, config, platform):
    sweeper = sweeper_for(granted, config, platform, ASSIGNED_AT)

    result = await sweeper.sweep(EXPIRES_AT + timedelta(days=3))

    assert result.revoked == 1


@pytest.mark.asyncio
async def test_missing_guild_config_drops_record_without_revoke(granted, platform):
    sweeper = sweeper_for(granted, InMemoryConfig(), platform, EXPIRES_AT)

    result = await sweeper.sweep()

    assert result.revoked == 0
    assert result.deleted == 1
    assert platform.calls == []
    assert not granted.rows


@pytest.mark.asyncio
async def test_cleared_role_drops_record_without_revoke(granted, platform, settings_with):
    config = InMemoryConfig(settings_with(role_id=None))

    result = await sweeper_for(granted, config, platform, EXPIRES_AT).sweep()

    assert result.deleted == 1
    assert platform.calls == []


@pytest.mark.asyncio
async def test_revoke_failure_still_deletes_record(granted, config, platform):
    platform.fail.add("revoke_role")

    result = await sweeper_for(granted, config, platform, EXPIRES_AT).sweep()

    assert result.revoke_failed == 1
    assert result.deleted == 1
    assert not granted.rows


@pytest.mark.asyncio
async def test_unavailable_config_keeps_record_for_retry(granted, config, platform):
    config.unavailable = True

    result = await sweeper_for(granted, config, platform, EXPIRES_AT).sweep()

    assert result.errors == 1
    assert platform.calls == []
    assert (GUILD_ID, USER_ID) in granted.rows

    config.unavailable = False
    result = await sweeper_for(granted, config, platform, EXPIRES_AT).sweep()
    assert result.revoked == 1
    assert not granted.rows


@pytest.mark.asyncio
async def test_unavailable_store_is_reported(role_store, config, platform):
    role_store.fail_list = True

    result = await sweeper_for(role_store, config, platform, EXPIRES_AT).sweep()

    assert result.errors == 1
    assert result.expired == 0


@pytest.mark.asyncio
async def test_delete_failure_does_not_stop_the_sweep(role_store, config, platform):
    platform.add_member(USER_ID + 1)
    await role_store.upsert(GUILD_ID, USER_ID, EXPIRES_AT, ASSIGNED_AT)
    await role_store.upsert(GUILD_ID, USER_ID + 1, EXPIRES_AT, ASSIGNED_AT)
    role_store.fail_delete = True

    result = await sweeper_for(role_store, config, platform, EXPIRES_AT).sweep()

    assert result.revoked == 2
    assert result.errors == 2
