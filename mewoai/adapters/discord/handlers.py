"""Discord message handlers.

Kept separate from the bot factory so they can be exercised with simple
stand-ins for ``discord.Message``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from ...models import ActivityOutcome

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ...service import MemberService

logger = logging.getLogger(__name__)

THROTTLE_NOTICE_SECONDS = 3.0


def _throttle_notice(message: discord.Message, cooldown_seconds: float) -> str:
    minutes = max(1, round(cooldown_seconds / 60))
    plural = "s" if minutes != 1 else ""
    return f"⚠️ {message.author.mention}, wait {minutes} minute{plural} before sending another image!"


async def handle_activity(service: "MemberService", message: discord.Message) -> ActivityOutcome:
    """Award XP for a guild message, deleting media posted too quickly."""

    if message.author.bot:
        return ActivityOutcome.IGNORED
    outcome = service.record_activity(
        str(message.author.id),
        has_media=bool(message.attachments),
    )
    if outcome is not ActivityOutcome.THROTTLED:
        return outcome

    try:
        await message.delete()
    except discord.HTTPException:
        logger.exception("Failed to delete throttled message from %s", message.author.id)
    try:
        await message.channel.send(
            _throttle_notice(message, service.settings.media_cooldown_seconds),
            delete_after=THROTTLE_NOTICE_SECONDS,
        )
    except discord.HTTPException:
        logger.exception("Failed to send throttle notice")
    return outcome


__all__ = ["THROTTLE_NOTICE_SECONDS", "handle_activity"]
