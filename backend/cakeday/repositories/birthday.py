"""Repository for the member_birthdays table."""

from __future__ import annotations

import asyncpg

from cakeday.database import acquire
from cakeday.models.birthday import DEFAULT_TIMEZONE, MemberBirthday

_COLUMNS = "guild_id, user_id, month, day, year, timezone, created_at, updated_at"


class BirthdayRepository:
    """One birthday per (guild, member); setting again overwrites in place."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def set_birthday(
        self,
        guild_id: int,
        user_id: int,
        month: int,
        day: int,
        year: int | None = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        """Insert or overwrite a member's birthday."""
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        if not 1 <= day <= 31:
            raise ValueError(f"day must be between 1 and 31, got {day}")

        async with acquire(self.pool) as conn:
            await conn.execute(
                """
                INSERT INTO member_birthdays (guild_id, user_id, month, day, year, timezone)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (guild_id, user_id) DO UPDATE SET
                    month      = EXCLUDED.month,
                    day        = EXCLUDED.day,
                    year       = EXCLUDED.year,
                    timezone   = EXCLUDED.timezone,
                    updated_at = NOW()
                """,
                guild_id,
                user_id,
                month,
                day,
                year,
                timezone,
            )

    async def get_birthday(self, guild_id: int, user_id: int) -> MemberBirthday | None:
        async with acquire(self.pool) as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM member_birthdays WHERE guild_id = $1 AND user_id = $2",
                guild_id,
                user_id,
            )
        return MemberBirthday(**dict(row)) if row else None

    async def delete_birthday(self, guild_id: int, user_id: int) -> bool:
        """Delete a member's birthday. Returns True if a row was deleted."""
        async with acquire(self.pool) as conn:
            result: str = await conn.execute(
                "DELETE FROM member_birthdays WHERE guild_id = $1 AND user_id = $2",
                guild_id,
                user_id,
            )
        return result == "DELETE 1"

    async def delete_guild_birthdays(self, guild_id: int) -> None:
        async with acquire(self.pool) as conn:
            await conn.execute("DELETE FROM member_birthdays WHERE guild_id = $1", guild_id)

    # ==================== Query Operations ====================

    async def list_guild_birthdays(self, guild_id: int) -> list[MemberBirthday]:
        """All birthdays in a guild, in a stable (month, day, user) order."""
        async with acquire(self.pool) as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_COLUMNS} FROM member_birthdays
                WHERE guild_id = $1
                ORDER BY month, day, user_id
                """,
                guild_id,
            )
        return [MemberBirthday(**dict(row)) for row in rows]

    async def list_birthdays_for_date(
        self, guild_id: int, month: int, day: int
    ) -> list[MemberBirthday]:
        async with acquire(self.pool) as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_COLUMNS} FROM member_birthdays
                WHERE guild_id = $1 AND month = $2 AND day = $3
                ORDER BY user_id
                """,
                guild_id,
                month,
                day,
            )
        return [MemberBirthday(**dict(row)) for row in rows]

    async def list_upcoming_birthdays(
        self, guild_id: int, current_month: int, current_day: int, limit: int = 5
    ) -> list[MemberBirthday]:
        """Birthdays after (month, day), wrapping around the end of the year."""
        async with acquire(self.pool) as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_COLUMNS} FROM member_birthdays
                WHERE guild_id = $1
                  AND NOT (month = $2 AND day = $3)
                ORDER BY
                  CASE WHEN (month, day) > ($2, $3) THEN 0 ELSE 1 END,
                  month, day, user_id
                LIMIT $4
                """,
                guild_id,
                current_month,
                current_day,
                limit,
            )
        return [MemberBirthday(**dict(row)) for row in rows]
