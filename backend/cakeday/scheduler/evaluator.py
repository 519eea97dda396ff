"""Decides, per member and per pass, whether today's announcement is due."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cakeday.localtime import LocalTime, LocalTimeResolver
from cakeday.models.birthday import MemberBirthday

logger = logging.getLogger(__name__)


def is_announcement_due(
    record: MemberBirthday,
    announcement_hour: int,
    local: LocalTime,
    has_active_assignment: bool,
) -> bool:
    """Pure trigger rule.

    True iff the member's local (month, day) equals the birthday, the local
    hour equals the guild's announcement hour, and no active role assignment
    is outstanding. The last condition makes a trigger at-most-once per day:
    it cannot repeat until the sweeper deletes the assignment ~24h later.

    Comparison is exact, so Feb 29 never matches in a non-leap local year.
    """
    return (
        local.month == record.month
        and local.day == record.day
        and local.hour == announcement_hour
        and not has_active_assignment
    )


@dataclass(frozen=True)
class Evaluation:
    trigger: bool
    local: LocalTime


class BirthdayEvaluator:
    def __init__(self, resolver: LocalTimeResolver) -> None:
        self.resolver = resolver

    def local_time_for(self, record: MemberBirthday, default_timezone: str = "UTC") -> LocalTime:
        """Member's zone, else the guild default, else UTC if the zone is unknown."""
        return self.resolver.resolve_or_utc(record.timezone or default_timezone)

    def evaluate(
        self,
        record: MemberBirthday,
        announcement_hour: int,
        has_active_assignment: bool,
        default_timezone: str = "UTC",
    ) -> Evaluation:
        local = self.local_time_for(record, default_timezone)
        trigger = is_announcement_due(record, announcement_hour, local, has_active_assignment)
        logger.debug(
            f"Evaluated user={record.user_id} guild={record.guild_id} "
            f"birthday={record.month:02d}-{record.day:02d} tz={local.timezone} "
            f"local={local.instant:%m-%d %H:00} hour={announcement_hour} "
            f"active={has_active_assignment} -> {trigger}"
        )
        return Evaluation(trigger=trigger, local=local)

    def should_trigger(
        self,
        record: MemberBirthday,
        announcement_hour: int,
        has_active_assignment: bool,
        default_timezone: str = "UTC",
    ) -> bool:
        return self.evaluate(
            record, announcement_hour, has_active_assignment, default_timezone
        ).trigger
