"""Discord embed/message builders.

Pure construction helpers for Discord UI objects, kept apart from the
gateway so they are easy to unit test.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import discord

from ...models import Announcement, AnnouncementCategory

CATEGORY_COLOURS = {
    AnnouncementCategory.INFO: discord.Colour.blue(),
    AnnouncementCategory.WARNING: discord.Colour.red(),
    AnnouncementCategory.EVENT: discord.Colour.green(),
    AnnouncementCategory.SHOWCASE: discord.Colour.gold(),
}


def build_announcement_embed(
    announcement: Announcement,
    *,
    brand: str,
    now: Optional[datetime] = None,
) -> discord.Embed:
    """Construct the embed posted from the dashboard announcement form."""

    embed = discord.Embed(
        title=announcement.title,
        description=announcement.body,
        colour=CATEGORY_COLOURS.get(announcement.category, discord.Colour.blue()),
        timestamp=now or datetime.now(timezone.utc),
    )
    embed.set_footer(text=f"{brand} • {announcement.category.value}")
    return embed


__all__ = ["CATEGORY_COLOURS", "build_announcement_embed"]
