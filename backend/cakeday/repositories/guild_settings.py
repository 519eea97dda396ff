"""Repository for the guild_settings table."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from cakeday.cache import MISSING, StaleTTLCache
from cakeday.database import acquire
from cakeday.errors import StoreUnavailable
from cakeday.models.birthday import GuildSettings

logger = logging.getLogger(__name__)

_COLUMNS = (
    "guild_id, channel_id, role_id, announcement_hour, message_with_year, "
    "message_without_year, allow_role_mention, required_role_id, default_timezone, "
    "setup_complete, created_at, updated_at"
)

# Recomputed on every write so the flag can never disagree with the columns
_SETUP_COMPLETE_EXPR = (
    "(channel_id IS NOT NULL AND role_id IS NOT NULL "
    "AND message_with_year <> '' AND message_without_year <> '')"
)

_UPDATABLE = frozenset(
    {
        "channel_id",
        "role_id",
        "announcement_hour",
        "message_with_year",
        "message_without_year",
        "allow_role_mention",
        "required_role_id",
        "default_timezone",
    }
)

# Columns that may be explicitly set back to NULL
_NULLABLE = frozenset({"channel_id", "role_id", "required_role_id"})


class GuildSettingsRepository:
    """Guild configuration: read by the scheduler every pass, written by setup flows."""

    def __init__(self, pool: asyncpg.Pool, cache_ttl: float = 120.0) -> None:
        self.pool = pool
        self._settings_cache = StaleTTLCache(maxsize=256, ttl=cache_ttl)
        self._setup_cache = StaleTTLCache(maxsize=1, ttl=cache_ttl)

    # ==================== Reads ====================

    async def get_settings(self, guild_id: int) -> GuildSettings | None:
        """Get a guild's settings, falling back to the last-known value if the store is down."""
        cache_key = f"settings:{guild_id}"
        cached = self._settings_cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            async with acquire(self.pool) as conn:
                row = await conn.fetchrow(
                    f"SELECT {_COLUMNS} FROM guild_settings WHERE guild_id = $1",
                    guild_id,
                )
        except StoreUnavailable:
            stale = self._settings_cache.get_stale(cache_key)
            if stale is MISSING:
                raise
            logger.warning(f"Returning stale settings for guild {guild_id}")
            return stale

        result = GuildSettings(**dict(row)) if row else None
        if result is not None:
            self._settings_cache.set(cache_key, result)
        return result

    async def list_setup_guilds(self) -> list[GuildSettings]:
        """All guilds whose setup is complete (the scheduler's work list)."""
        cache_key = "setup_guilds"
        cached = self._setup_cache.get(cache_key)
        if cached is not MISSING:
            return cached

        try:
            async with acquire(self.pool) as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM guild_settings "
                    "WHERE setup_complete = TRUE ORDER BY guild_id"
                )
        except StoreUnavailable:
            stale = self._setup_cache.get_stale(cache_key)
            if stale is MISSING:
                raise
            logger.warning("Returning stale list of set-up guilds")
            return stale

        result = [GuildSettings(**dict(row)) for row in rows]
        self._setup_cache.set(cache_key, result)
        return result

    # ==================== Writes ====================

    async def upsert_settings(self, settings: GuildSettings) -> GuildSettings:
        """Insert or fully replace a guild's settings. ``setup_complete`` is derived."""
        async with acquire(self.pool) as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO guild_settings (
                    guild_id, channel_id, role_id, announcement_hour,
                    message_with_year, message_without_year, allow_role_mention,
                    required_role_id, default_timezone, setup_complete
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                ON CONFLICT (guild_id) DO UPDATE SET
                    channel_id           = EXCLUDED.channel_id,
                    role_id              = EXCLUDED.role_id,
                    announcement_hour    = EXCLUDED.announcement_hour,
                    message_with_year    = EXCLUDED.message_with_year,
                    message_without_year = EXCLUDED.message_without_year,
                    allow_role_mention   = EXCLUDED.allow_role_mention,
                    required_role_id     = EXCLUDED.required_role_id,
                    default_timezone     = EXCLUDED.default_timezone,
                    setup_complete       = EXCLUDED.setup_complete,
                    updated_at           = NOW()
                RETURNING {_COLUMNS}
                """,
                settings.guild_id,
                settings.channel_id,
                settings.role_id,
                settings.announcement_hour,
                settings.message_with_year,
                settings.message_without_year,
                settings.allow_role_mention,
                settings.required_role_id,
                settings.default_timezone,
                settings.has_required_fields,
            )
        self._invalidate(settings.guild_id)
        return GuildSettings(**dict(row))

    async def update_settings(
        self, guild_id: int, *, clear: tuple[str, ...] = (), **changes: Any
    ) -> GuildSettings | None:
        """Partially update a guild's settings, creating the row if needed.

        ``None`` values in *changes* are ignored; list nullable columns in
        *clear* to reset them to NULL. Returns the updated settings.
        """
        unknown = (set(changes) | set(clear)) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")
        not_nullable = set(clear) - _NULLABLE
        if not_nullable:
            raise ValueError(f"Field(s) cannot be cleared: {', '.join(sorted(not_nullable))}")
        hour = changes.get("announcement_hour")
        if hour is not None and not 0 <= hour <= 23:
            raise ValueError("announcement_hour must be between 0 and 23")

        updates: list[str] = []
        values: list[Any] = [guild_id]
        for column, value in changes.items():
            if value is None:
                continue
            values.append(value)
            updates.append(f"{column} = ${len(values)}")
        updates.extend(f"{column} = NULL" for column in clear)

        if not updates:
            return await self.get_settings(guild_id)

        query = (
            f"UPDATE guild_settings SET {', '.join(updates)}, updated_at = NOW() "
            "WHERE guild_id = $1"
        )
        async with acquire(self.pool) as conn:
            async with conn.transaction():
                await conn.execute(
                    "INSERT INTO guild_settings (guild_id) VALUES ($1) ON CONFLICT DO NOTHING",
                    guild_id,
                )
                await conn.execute(query, *values)
                row = await conn.fetchrow(
                    f"""
                    UPDATE guild_settings SET setup_complete = {_SETUP_COMPLETE_EXPR}
                    WHERE guild_id = $1
                    RETURNING {_COLUMNS}
                    """,
                    guild_id,
                )
        self._invalidate(guild_id)
        return GuildSettings(**dict(row)) if row else None

    async def delete_settings(self, guild_id: int) -> bool:
        """Delete a guild's settings wholesale (guild reset). Returns True if deleted."""
        async with acquire(self.pool) as conn:
            result: str = await conn.execute(
                "DELETE FROM guild_settings WHERE guild_id = $1",
                guild_id,
            )
        self._settings_cache.forget(f"settings:{guild_id}")
        self._setup_cache.clear()
        return result == "DELETE 1"

    def _invalidate(self, guild_id: int) -> None:
        self._settings_cache.invalidate(f"settings:{guild_id}")
        self._setup_cache.clear()
