"""Revokes birthday roles whose tracked expiry has passed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from cakeday.clock import Clock, SystemClock
from cakeday.errors import PlatformCallFailed, StoreUnavailable
from cakeday.models.birthday import ActiveBirthdayRole
from cakeday.scheduler.interfaces import ConfigurationProvider, RoleLifecycleStore, RolePlatform

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    expired: int = 0
    revoked: int = 0
    revoke_failed: int = 0
    deleted: int = 0
    errors: int = 0


class ExpirySweeper:
    """Scans the whole store, not per guild, so a restart clears the backlog in one pass."""

    def __init__(
        self,
        store: RoleLifecycleStore,
        config: ConfigurationProvider,
        platform: RolePlatform,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.platform = platform
        self.clock = clock or SystemClock()

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or self.clock.now()
        result = SweepResult()

        try:
            expired = await self.store.list_expired(now)
        except StoreUnavailable as e:
            logger.error(f"Failed to list expired birthday roles: {e}")
            result.errors += 1
            return result

        if not expired:
            logger.debug("No expired birthday roles found")
            return result

        result.expired = len(expired)
        logger.info(f"Found {len(expired)} expired birthday role(s) to remove")

        for assignment in expired:
            try:
                await self._expire(assignment, result)
            except Exception:
                result.errors += 1
                logger.exception(
                    f"Unexpected error expiring birthday role for {assignment.user_id} "
                    f"in guild {assignment.guild_id}"
                )
        return result

    async def _expire(self, assignment: ActiveBirthdayRole, result: SweepResult) -> None:
        guild_id, user_id = assignment.guild_id, assignment.user_id

        try:
            settings = await self.config.get_settings(guild_id)
        except StoreUnavailable as e:
            # Keep the row; the revoke is retried next pass
            logger.warning(f"Failed to get settings for guild {guild_id} during cleanup: {e}")
            result.errors += 1
            return

        if settings is None or settings.role_id is None:
            logger.info(
                f"Guild {guild_id} has no birthday role configured, "
                f"dropping expired record for {user_id}"
            )
        else:
            try:
                await self.platform.revoke_role(guild_id, user_id, settings.role_id)
                result.revoked += 1
                logger.info(
                    f"Removed expired birthday role from {user_id} in guild {guild_id} "
                    f"(expired at {assignment.role_expires_at})"
                )
            except PlatformCallFailed as e:
                # Not retried: the record is deleted below regardless
                result.revoke_failed += 1
                logger.warning(
                    f"Failed to remove expired birthday role from {user_id} "
                    f"in guild {guild_id}: {e}"
                )

        try:
            if await self.store.delete(guild_id, user_id):
                result.deleted += 1
        except StoreUnavailable as e:
            result.errors += 1
            logger.error(
                f"Failed to delete active birthday role record for {user_id} "
                f"in guild {guild_id}: {e}"
            )
