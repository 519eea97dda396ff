"""discord.py implementation of the scheduler's role/message platform."""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

from cakeday.errors import PlatformCallFailed
from cakeday.scheduler.interfaces import MentionPolicy

logger = logging.getLogger(__name__)

GRANT_REASON = "Birthday"
REVOKE_REASON = "Birthday ended"


class DiscordPlatform:
    """Resolves guilds, members and channels from cache first, then the API."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    # ==================== Lookups ====================

    async def _get_guild(self, guild_id: int) -> discord.Guild:
        if guild := self.bot.get_guild(guild_id):
            return guild
        try:
            return await self.bot.fetch_guild(guild_id)
        except discord.HTTPException as e:
            raise PlatformCallFailed("fetch_guild", guild_id, str(e)) from e

    async def _fetch_member(self, guild: discord.Guild, user_id: int) -> discord.Member | None:
        if member := guild.get_member(user_id):
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as e:
            raise PlatformCallFailed("fetch_member", guild.id, str(e)) from e

    async def _require_member(self, action: str, guild_id: int, user_id: int) -> discord.Member:
        guild = await self._get_guild(guild_id)
        member = await self._fetch_member(guild, user_id)
        if member is None:
            raise PlatformCallFailed(action, guild_id, f"user {user_id} is not a member")
        return member

    # ==================== RolePlatform ====================

    async def member_display_name(self, guild_id: int, user_id: int) -> str | None:
        guild = await self._get_guild(guild_id)
        member = await self._fetch_member(guild, user_id)
        return member.display_name if member else None

    async def member_has_role(self, guild_id: int, user_id: int, role_id: int) -> bool:
        guild = await self._get_guild(guild_id)
        member = await self._fetch_member(guild, user_id)
        if member is None:
            return False
        return any(role.id == role_id for role in member.roles)

    async def grant_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        member = await self._require_member("grant_role", guild_id, user_id)
        try:
            await member.add_roles(discord.Object(id=role_id), reason=GRANT_REASON)
        except discord.HTTPException as e:
            raise PlatformCallFailed("grant_role", guild_id, str(e)) from e

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        member = await self._require_member("revoke_role", guild_id, user_id)
        try:
            await member.remove_roles(discord.Object(id=role_id), reason=REVOKE_REASON)
        except discord.HTTPException as e:
            raise PlatformCallFailed("revoke_role", guild_id, str(e)) from e

    async def send_message(self, channel_id: int, text: str, mentions: MentionPolicy) -> None:
        channel = self.bot.get_channel(channel_id)
        try:
            if channel is None:
                channel = await self.bot.fetch_channel(channel_id)
        except discord.HTTPException as e:
            raise PlatformCallFailed("send_message", None, str(e)) from e

        guild_id = getattr(getattr(channel, "guild", None), "id", None)
        if not isinstance(channel, discord.abc.Messageable):
            raise PlatformCallFailed(
                "send_message", guild_id, f"channel {channel_id} is not a text channel"
            )

        allowed = discord.AllowedMentions(
            everyone=False,
            users=[discord.Object(id=uid) for uid in mentions.users],
            roles=mentions.roles,
        )
        try:
            await channel.send(text, allowed_mentions=allowed)
        except discord.HTTPException as e:
            raise PlatformCallFailed("send_message", guild_id, str(e)) from e
