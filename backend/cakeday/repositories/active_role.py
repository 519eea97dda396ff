"""Repository for the active_birthday_roles table.

A row here is the durable proxy for "this bot granted the birthday role and
will revoke it at ``role_expires_at``". Expiry is an absolute UTC instant,
re-checked from scratch every pass, so revocation survives restarts no
matter how long the process was down.
"""

from __future__ import annotations

from datetime import datetime

import asyncpg

from cakeday.database import acquire
from cakeday.models.birthday import ActiveBirthdayRole

_COLUMNS = "guild_id, user_id, role_assigned_at, role_expires_at"


class ActiveRoleRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def upsert(
        self, guild_id: int, user_id: int, expires_at: datetime, assigned_at: datetime
    ) -> None:
        """Record a grant, replacing any existing row for the pair.

        Call only after the platform role grant has succeeded.
        """
        async with acquire(self.pool) as conn:
            await conn.execute(
                """
                INSERT INTO active_birthday_roles
                    (guild_id, user_id, role_assigned_at, role_expires_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (guild_id, user_id) DO UPDATE SET
                    role_assigned_at = EXCLUDED.role_assigned_at,
                    role_expires_at  = EXCLUDED.role_expires_at
                """,
                guild_id,
                user_id,
                assigned_at,
                expires_at,
            )

    async def list_expired(self, now: datetime) -> list[ActiveBirthdayRole]:
        """Every row with ``role_expires_at <= now``, across all guilds."""
        async with acquire(self.pool) as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_COLUMNS} FROM active_birthday_roles
                WHERE role_expires_at <= $1
                ORDER BY role_expires_at, guild_id, user_id
                """,
                now,
            )
        return [ActiveBirthdayRole(**dict(row)) for row in rows]

    async def delete(self, guild_id: int, user_id: int) -> bool:
        """Delete a row. Safe if already gone; returns True if a row was removed."""
        async with acquire(self.pool) as conn:
            result: str = await conn.execute(
                "DELETE FROM active_birthday_roles WHERE guild_id = $1 AND user_id = $2",
                guild_id,
                user_id,
            )
        return result == "DELETE 1"

    async def exists(self, guild_id: int, user_id: int) -> bool:
        async with acquire(self.pool) as conn:
            return bool(
                await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM active_birthday_roles "
                    "WHERE guild_id = $1 AND user_id = $2)",
                    guild_id,
                    user_id,
                )
            )

    async def list_active_user_ids(self, guild_id: int) -> set[int]:
        """Members of a guild that currently hold a tracked birthday role."""
        async with acquire(self.pool) as conn:
            rows = await conn.fetch(
                "SELECT user_id FROM active_birthday_roles WHERE guild_id = $1",
                guild_id,
            )
        return {row["user_id"] for row in rows}

    async def delete_guild(self, guild_id: int) -> None:
        async with acquire(self.pool) as conn:
            await conn.execute("DELETE FROM active_birthday_roles WHERE guild_id = $1", guild_id)
