"""Grants the birthday role, posts the announcement and records the expiry."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta

from cakeday.clock import Clock, SystemClock
from cakeday.errors import PlatformCallFailed, StoreUnavailable
from cakeday.localtime import LocalTime, LocalTimeResolver
from cakeday.models.birthday import GuildSettings, MemberBirthday
from cakeday.scheduler.interfaces import MentionPolicy, RoleLifecycleStore, RolePlatform
from cakeday.scheduler.templates import render_announcement

logger = logging.getLogger(__name__)

ROLE_DURATION = timedelta(hours=24)


class Outcome(enum.Enum):
    ANNOUNCED = "announced"
    NOT_A_MEMBER = "not_a_member"
    MISSING_REQUIRED_ROLE = "missing_required_role"
    GRANT_FAILED = "grant_failed"
    SEND_FAILED = "send_failed"
    EXPIRY_NOT_RECORDED = "expiry_not_recorded"

    @property
    def granted(self) -> bool:
        return self in (Outcome.ANNOUNCED, Outcome.SEND_FAILED, Outcome.EXPIRY_NOT_RECORDED)


def compute_expiry(local: LocalTime, announcement_hour: int) -> datetime:
    """Today's local announcement instant plus 24 hours, as a UTC instant."""
    return LocalTimeResolver.announcement_instant(local, announcement_hour) + ROLE_DURATION


class AnnouncementDispatcher:
    def __init__(
        self,
        platform: RolePlatform,
        store: RoleLifecycleStore,
        clock: Clock | None = None,
    ) -> None:
        self.platform = platform
        self.store = store
        self.clock = clock or SystemClock()

    async def announce(
        self, settings: GuildSettings, record: MemberBirthday, local: LocalTime
    ) -> Outcome:
        """Run grant → send → record for one member whose birthday is due.

        A failed grant stops everything. A failed send is logged but the
        expiry is still recorded, since the role is already out there and
        must come back off.
        """
        if settings.channel_id is None or settings.role_id is None:
            raise ValueError(f"Guild {settings.guild_id} has no birthday channel or role")
        guild_id, user_id = settings.guild_id, record.user_id

        name = await self.platform.member_display_name(guild_id, user_id)
        if name is None:
            logger.debug(f"User {user_id} is not a member of guild {guild_id}, skipping")
            return Outcome.NOT_A_MEMBER

        if settings.required_role_id is not None and not await self.platform.member_has_role(
            guild_id, user_id, settings.required_role_id
        ):
            logger.debug(
                f"User {user_id} lacks required role {settings.required_role_id} "
                f"in guild {guild_id}, skipping"
            )
            return Outcome.MISSING_REQUIRED_ROLE

        expires_at = compute_expiry(local, settings.announcement_hour)

        try:
            await self.platform.grant_role(guild_id, user_id, settings.role_id)
        except PlatformCallFailed as e:
            logger.error(f"Failed to add birthday role to {user_id} in guild {guild_id}: {e}")
            return Outcome.GRANT_FAILED
        logger.info(f"Added birthday role to {user_id} in guild {guild_id}")

        outcome = Outcome.ANNOUNCED
        text = render_announcement(settings, record, name, local.year)
        mentions = MentionPolicy(users=(user_id,), roles=settings.allow_role_mention)
        try:
            await self.platform.send_message(settings.channel_id, text, mentions)
            logger.info(f"Sent birthday announcement for {user_id} in guild {guild_id}")
        except PlatformCallFailed as e:
            logger.error(
                f"Failed to send birthday message to channel {settings.channel_id} "
                f"in guild {guild_id}: {e}"
            )
            outcome = Outcome.SEND_FAILED

        try:
            await self.store.upsert(guild_id, user_id, expires_at, self.clock.now())
        except StoreUnavailable as e:
            # Role stays on until the next matching birthday or a manual fix
            logger.error(
                f"Failed to record birthday role expiry for {user_id} in guild {guild_id}: {e}"
            )
            return Outcome.EXPIRY_NOT_RECORDED

        logger.debug(f"Birthday role for {user_id} in guild {guild_id} expires at {expires_at}")
        return outcome
