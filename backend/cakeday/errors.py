"""Error taxonomy for the birthday scheduler."""

from __future__ import annotations


class CakedayError(Exception):
    """Base class for all cakeday errors."""


class InvalidTimezone(CakedayError, ValueError):
    """An IANA timezone identifier was not found in the timezone database."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown timezone: {name!r}")


class StoreUnavailable(CakedayError):
    """A durable store read or write failed."""


class PlatformCallFailed(CakedayError):
    """A role grant/revoke or message send on the chat platform failed."""

    def __init__(self, action: str, guild_id: int | None, detail: str) -> None:
        self.action = action
        self.guild_id = guild_id
        self.detail = detail
        super().__init__(f"{action} failed (guild={guild_id}): {detail}")
