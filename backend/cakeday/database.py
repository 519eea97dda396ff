"""asyncpg pool ownership and store-error translation.

Everything that talks to PostgreSQL borrows connections through
:func:`acquire`, so driver and network failures surface as a single
:class:`~cakeday.errors.StoreUnavailable` the scheduler knows how to skip.

A DSN on port 6543 is treated as a PgBouncer transaction pooler: no
prepared statements and no idle connections held open.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import asyncpg

from cakeday.errors import StoreUnavailable

logger = logging.getLogger(__name__)

TRANSACTION_POOLER_PORT = ":6543"

# Errors that mean "the store could not serve this request"
STORE_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    TimeoutError,
    asyncio.TimeoutError,
)


@asynccontextmanager
async def acquire(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """Borrow a connection, translating driver failures into StoreUnavailable."""
    try:
        async with pool.acquire() as conn:
            yield conn
    except STORE_ERRORS as e:
        raise StoreUnavailable(f"{type(e).__name__}: {e}") from e


@dataclass
class PoolConfig:
    """Sizing and retry policy for the bot's single pool."""

    min_size: int = 1
    max_size: int = 4
    acquire_timeout: float = 5.0
    command_timeout: float = 15.0
    idle_lifetime: float = 300.0
    connect_attempts: int = 3
    backoff_base: float = 3.0


class DatabaseManager:
    """Creates, verifies and closes the pool the repositories share."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self.transaction_pooler = TRANSACTION_POOLER_PORT in database_url
        self._pool: asyncpg.Pool | None = None

    def _pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        if self.transaction_pooler:
            return {
                "dsn": self.database_url,
                "min_size": 0,
                "max_size": cfg.max_size,
                "timeout": cfg.acquire_timeout,
                "command_timeout": cfg.command_timeout,
                "statement_cache_size": 0,
                "max_inactive_connection_lifetime": 0,
            }
        return {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.acquire_timeout,
            "command_timeout": cfg.command_timeout,
            "max_inactive_connection_lifetime": cfg.idle_lifetime,
        }

    async def _open_verified_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(**self._pool_kwargs())
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect(self) -> None:
        """Open the pool, retrying with exponential backoff before giving up."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        if self.transaction_pooler:
            logger.warning("DATABASE_URL points at a transaction pooler, prepared statements off")

        attempts = self.config.connect_attempts
        for attempt in range(1, attempts + 1):
            try:
                self._pool = await self._open_verified_pool()
            except Exception as e:
                if attempt == attempts:
                    logger.error(f"Database unreachable after {attempts} attempts: {e!r}")
                    raise
                delay = self.config.backoff_base * 2 ** (attempt - 1)
                logger.warning(
                    f"Database connect {attempt}/{attempts} failed ({e!r}), retrying in {delay}s"
                )
                await asyncio.sleep(delay)
            else:
                logger.info(
                    f"Database pool ready (max_size={self.config.max_size}, "
                    f"transaction_pooler={self.transaction_pooler})"
                )
                return

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        try:
            await pool.close()
            logger.info("Database pool closed")
        except Exception:
            logger.exception("Error closing database pool")

    async def check_health(self) -> bool:
        """True if a connection can be borrowed and answer a trivial query."""
        if self._pool is None:
            return False
        try:
            async with acquire(self._pool) as conn:
                await conn.fetchval("SELECT 1")
        except StoreUnavailable:
            return False
        return True

    @property
    def pool(self) -> asyncpg.Pool:
        """The live pool. Raises if :meth:`connect` has not succeeded."""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
