"""Local-time resolution for members' IANA timezones.

Everything the scheduler knows about "today" and "this hour" for a member
comes from :class:`LocalTimeResolver`. The resolver samples the injected
clock once per call, so the hour and the date it reports always describe the
same instant.

Only the local *hour* is ever compared, never minutes. Zones with sub-hour
offsets (``Asia/Kolkata`` at UTC+5:30, ``Asia/Kathmandu`` at UTC+5:45) still
report a whole local clock hour and need no special handling.
"""

from __future__ import annotations

import logging
import zoneinfo
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache

from cakeday.clock import Clock, SystemClock
from cakeday.errors import InvalidTimezone

logger = logging.getLogger(__name__)

UTC_NAME = "UTC"

# Shown when a timezone search has no query
POPULAR_TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Toronto",
    "America/Vancouver",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Europe/Amsterdam",
    "Europe/Moscow",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Asia/Hong_Kong",
    "Asia/Singapore",
    "Asia/Seoul",
    "Asia/Kolkata",
    "Asia/Dubai",
    "Australia/Sydney",
    "Australia/Melbourne",
    "Australia/Perth",
    "Pacific/Auckland",
    "Pacific/Honolulu",
    "UTC",
]

# Discord autocomplete limit
MAX_SEARCH_RESULTS = 25


@dataclass(frozen=True)
class LocalTime:
    """A single sampled instant, viewed in one member's timezone."""

    timezone: str
    instant: datetime

    @property
    def hour(self) -> int:
        return self.instant.hour

    @property
    def month(self) -> int:
        return self.instant.month

    @property
    def day(self) -> int:
        return self.instant.day

    @property
    def year(self) -> int:
        return self.instant.year

    @property
    def date(self) -> date:
        return self.instant.date()


def load_zone(name: str) -> zoneinfo.ZoneInfo:
    """Return the ``ZoneInfo`` for *name* or raise :class:`InvalidTimezone`."""
    if not name:
        raise InvalidTimezone(name)
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezone(name) from e


def is_valid_timezone(name: str) -> bool:
    try:
        load_zone(name)
    except InvalidTimezone:
        return False
    return True


class LocalTimeResolver:
    """Converts IANA zone names into the member's current local hour and date."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()

    def resolve(self, name: str) -> LocalTime:
        """Sample the clock once and express it in zone *name*.

        Raises :class:`InvalidTimezone` for an unknown identifier; callers
        decide whether to fall back (see :meth:`resolve_or_utc`).
        """
        zone = load_zone(name)
        return LocalTime(timezone=name, instant=self.clock.now().astimezone(zone))

    def resolve_or_utc(self, name: str) -> LocalTime:
        """Like :meth:`resolve`, but an unknown zone falls back to UTC."""
        try:
            return self.resolve(name)
        except InvalidTimezone:
            logger.warning(f"Unknown timezone {name!r}, falling back to UTC")
            return self.resolve(UTC_NAME)

    def local_hour(self, name: str) -> int:
        return self.resolve(name).hour

    def local_date(self, name: str) -> tuple[int, int]:
        """Return the current local ``(month, day)`` in zone *name*."""
        local = self.resolve(name)
        return local.month, local.day

    @staticmethod
    def announcement_instant(local: LocalTime, hour: int) -> datetime:
        """Top of *hour* on *local*'s calendar day, in UTC."""
        zone = load_zone(local.timezone)
        start = datetime(local.year, local.month, local.day, hour, tzinfo=zone)
        return start.astimezone(timezone.utc)


# ==================== Timezone Listing ====================


def format_offset(offset_seconds: int) -> str:
    """Format a UTC offset as ``UTC-5`` or ``UTC+5:30``."""
    sign = "+"
    if offset_seconds < 0:
        sign = "-"
        offset_seconds = -offset_seconds

    hours, remainder = divmod(offset_seconds, 3600)
    minutes = remainder // 60
    if minutes == 0:
        return f"UTC{sign}{hours}"
    return f"UTC{sign}{hours}:{minutes:02d}"


@dataclass(frozen=True)
class TimezoneInfo:
    iana: str
    offset: str


def timezone_info(name: str, at: datetime | None = None) -> TimezoneInfo:
    """Describe *name* with its offset at instant *at* (default: now)."""
    at = at or datetime.now(timezone.utc)
    try:
        zone = load_zone(name)
    except InvalidTimezone:
        return TimezoneInfo(iana=name, offset="UTC")

    offset = at.astimezone(zone).utcoffset() or timedelta(0)
    return TimezoneInfo(iana=name, offset=format_offset(int(offset.total_seconds())))


@lru_cache(maxsize=1)
def _all_timezones() -> tuple[str, ...]:
    return tuple(sorted(zoneinfo.available_timezones()))


def search_timezones(
    query: str, at: datetime | None = None, limit: int = MAX_SEARCH_RESULTS
) -> list[TimezoneInfo]:
    """Find timezones whose IANA name or offset label contains *query*.

    An empty query returns the popular zones in their curated order.
    """
    at = at or datetime.now(timezone.utc)
    query = query.strip().lower()
    if not query:
        return [timezone_info(name, at) for name in POPULAR_TIMEZONES[:limit]]

    matches: dict[str, TimezoneInfo] = {}
    for name in _all_timezones():
        info = timezone_info(name, at)
        if query in name.lower() or query in info.offset.lower():
            matches[name] = info

    return [matches[name] for name in sorted(matches)][:limit]
