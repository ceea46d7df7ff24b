"""discord.py implementation of the community gateway."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set

import discord
from discord.ext import commands

from ...gateway import GatewayError
from ...models import Announcement, ChannelInfo
from .builders import build_announcement_embed

logger = logging.getLogger(__name__)


class DiscordGateway:
    """Applies role changes and posts announcements in a single guild."""

    def __init__(self, bot: commands.Bot, guild_id: Optional[int], *, brand: str) -> None:
        self._bot = bot
        self._guild_id = guild_id
        self._brand = brand

    def _guild(self) -> Optional[discord.Guild]:
        if self._guild_id is None:
            logger.debug("Guild id not configured")
            return None
        guild = self._bot.get_guild(self._guild_id)
        if guild is None:
            logger.warning("Failed to locate guild with id %s", self._guild_id)
        return guild

    async def _member(self, user_id: str) -> discord.Member:
        guild = self._guild()
        if guild is None:
            raise GatewayError("guild unavailable")
        member = guild.get_member(int(user_id))
        if member is not None:
            return member
        try:
            return await guild.fetch_member(int(user_id))
        except discord.NotFound as exc:
            raise GatewayError(f"member {user_id} is not in the guild") from exc
        except discord.HTTPException as exc:
            raise GatewayError(f"failed to fetch member {user_id}: {exc}") from exc

    async def add_role(self, user_id: str, role_id: int) -> None:
        member = await self._member(user_id)
        try:
            await member.add_roles(discord.Object(id=role_id))
        except discord.HTTPException as exc:
            raise GatewayError(f"failed to add role {role_id}: {exc}") from exc

    async def remove_roles(self, user_id: str, role_ids: Sequence[int]) -> None:
        member = await self._member(user_id)
        try:
            await member.remove_roles(*(discord.Object(id=role_id) for role_id in role_ids))
        except discord.HTTPException as exc:
            raise GatewayError(f"failed to remove roles {list(role_ids)}: {exc}") from exc

    def venue_member_ids(self, venue_name: str) -> Optional[Set[str]]:
        guild = self._guild()
        if guild is None:
            return None
        channel = discord.utils.get(guild.channels, name=venue_name)
        if channel is None:
            logger.warning("Venue channel %r not found", venue_name)
            return None
        return {str(member.id) for member in getattr(channel, "members", [])}

    def announcement_channels(self) -> List[ChannelInfo]:
        guild = self._guild()
        if guild is None:
            return []
        # text_channels covers both regular text and news (announcement) channels
        return [ChannelInfo(id=channel.id, name=channel.name) for channel in guild.text_channels]

    async def send_announcement(self, announcement: Announcement) -> bool:
        channel = self._bot.get_channel(announcement.channel_id)
        if channel is None:
            logger.warning("Failed to locate announcement channel with id %s", announcement.channel_id)
            return False
        embed = build_announcement_embed(announcement, brand=self._brand)
        files = []
        if announcement.attachment is not None:
            files.append(discord.File(str(announcement.attachment)))
        try:
            await channel.send(
                content=announcement.mention or None,
                embed=embed,
                files=files,
                allowed_mentions=discord.AllowedMentions(everyone=True),
            )
        except discord.HTTPException as exc:
            raise GatewayError(f"failed to send announcement: {exc}") from exc
        return True

    async def has_member(self, user_id: str) -> bool:
        try:
            await self._member(user_id)
        except (GatewayError, ValueError):
            return False
        return True


__all__ = ["DiscordGateway"]
