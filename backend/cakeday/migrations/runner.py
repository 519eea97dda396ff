"""Versioned SQL migrations, applied once each at bot startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import asyncpg

from cakeday.database import acquire

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Arbitrary key for pg_advisory_xact_lock; serializes concurrent starts
MIGRATION_LOCK_KEY = 0x0CA6ED4A


@dataclass(frozen=True)
class Migration:
    version: str
    filename: str
    sql: str

    @classmethod
    def from_path(cls, path: Path) -> Migration:
        return cls(version=path.stem, filename=path.name, sql=path.read_text(encoding="utf-8"))


class MigrationRunner:
    """Apply ``versions/NNN_description.sql`` in filename order.

    Each migration and its ``schema_migrations`` row commit together, so a
    failure leaves nothing half-applied and the file is retried next start.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    def discover(self) -> list[Migration]:
        return [Migration.from_path(p) for p in sorted(self.versions_dir.glob("*.sql"))]

    async def applied_versions(self) -> set[str]:
        async with acquire(self.pool) as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
        return {row["version"] for row in rows}

    async def pending(self) -> list[Migration]:
        applied = await self.applied_versions()
        return [m for m in self.discover() if m.version not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every unapplied migration; returns the versions applied now."""
        pending = await self.pending()
        if not pending:
            logger.info("Database schema is up to date")
            return []

        for migration in pending:
            await self._apply(migration)

        versions = [m.version for m in pending]
        logger.info(f"Applied {len(versions)} migration(s): {', '.join(versions)}")
        return versions

    async def _apply(self, migration: Migration) -> None:
        logger.info(f"Applying migration {migration.filename}")
        async with acquire(self.pool) as conn:
            async with conn.transaction():
                await conn.execute("SELECT pg_advisory_xact_lock($1)", MIGRATION_LOCK_KEY)
                already = await conn.fetchval(
                    f"SELECT 1 FROM {self.TRACKING_TABLE} WHERE version = $1",  # noqa: S608
                    migration.version,
                )
                if already:
                    logger.debug(f"Migration {migration.version} applied by another process")
                    return
                await conn.execute(migration.sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                    migration.version,
                    migration.filename,
                )
