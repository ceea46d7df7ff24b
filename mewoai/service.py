"""High-level member service orchestrating commands and dashboard actions."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from .config import RoleConfig, Settings, get_settings
from .gateway import CommunityGateway
from .models import (
    ActivityOutcome,
    Announcement,
    AttendanceReport,
    ChannelInfo,
    DashboardStats,
    MemberRecord,
)
from .services.attendance import AttendanceProcessor, VenueNotFoundError
from .services.expiry import ExpirySweeper
from .services.roles import grant_role
from .state import MemberExistsError, MemberState

logger = logging.getLogger(__name__)

MENTION_TOKENS = ("@everyone", "@here")


class MemberService:
    """Coordinates the member store, the chat platform and the batch jobs."""

    class AlreadyRegisteredError(RuntimeError):
        """Raised when a user registers twice."""

    class MemberNotFoundError(LookupError):
        """Raised when a record or guild member is missing."""

    class ChannelNotFoundError(LookupError):
        """Raised when an announcement targets an unknown channel."""

    VenueNotFoundError = VenueNotFoundError

    def __init__(
        self,
        state: MemberState,
        gateway: CommunityGateway,
        *,
        settings: Optional[Settings] = None,
        roles: Optional[RoleConfig] = None,
    ) -> None:
        self.state = state
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.roles = roles or RoleConfig(member=None, warnings=(), expert=None)
        self.attendance = AttendanceProcessor(state, gateway, self.settings, self.roles)
        self.sweeper = ExpirySweeper(state, gateway, self.roles)

    # Commands ----------------------------------------------------------
    async def register(
        self, user_id: str, display_name: str, *, now: Optional[datetime] = None
    ) -> MemberRecord:
        try:
            member = self.state.create_member(user_id, display_name, now=now)
        except MemberExistsError as exc:
            raise MemberService.AlreadyRegisteredError(
                f"{display_name} is already registered"
            ) from exc
        logger.info("Registered %s (%s)", display_name, user_id)
        await grant_role(self.gateway, user_id, self.roles.member, purpose="member")
        return member

    def request_leave(
        self,
        user_id: str,
        display_name: str,
        reason: str,
        *,
        now: Optional[datetime] = None,
    ) -> MemberRecord:
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("A reason is required to request leave.")
        member = self.state.set_leave(user_id, display_name, reason, now=now)
        logger.info("Leave recorded for %s: %s", display_name, reason)
        return member

    def record_activity(
        self,
        user_id: str,
        *,
        has_media: bool,
        now: Optional[datetime] = None,
    ) -> ActivityOutcome:
        """Credit a message to its author, throttling rapid media posts."""

        member = self.state.get_member(user_id)
        if member is None:
            return ActivityOutcome.IGNORED
        now = now or datetime.now(timezone.utc)
        if not has_media:
            member.xp += self.settings.message_xp
            self.state.save_member(member)
            return ActivityOutcome.MESSAGE
        if (
            member.last_media_time is not None
            and now - member.last_media_time < self.settings.media_cooldown
        ):
            return ActivityOutcome.THROTTLED
        member.last_media_time = now
        member.xp += self.settings.media_xp
        self.state.save_member(member)
        return ActivityOutcome.MEDIA

    # Dashboard ---------------------------------------------------------
    def dashboard_stats(self) -> DashboardStats:
        top = self.state.top_members_by_xp(1)
        return DashboardStats(
            total=self.state.count_members(),
            warned=self.state.count_warned_members(),
            top=top[0] if top else None,
        )

    def security_candidates(self) -> List[MemberRecord]:
        return self.state.top_members_by_xp(self.settings.security_candidates)

    def announcement_channels(self) -> List[ChannelInfo]:
        return self.gateway.announcement_channels()

    async def post_announcement(self, announcement: Announcement) -> bool:
        """Send an announcement embed; returns ``False`` if delivery failed."""

        if announcement.mention and announcement.mention not in MENTION_TOKENS:
            raise ValueError(f"Unsupported mention {announcement.mention!r}")
        try:
            delivered = await self.gateway.send_announcement(announcement)
        except Exception:
            logger.exception("Failed to post announcement to %s", announcement.channel_id)
            return False
        if not delivered:
            raise MemberService.ChannelNotFoundError(
                f"Channel {announcement.channel_id} not found"
            )
        logger.info(
            "Posted %s announcement %r to %s",
            announcement.category.value,
            announcement.title,
            announcement.channel_id,
        )
        return True

    async def promote(self, user_id: str) -> MemberRecord:
        """Grant the expert role to ``user_id`` and reset their XP."""

        member = self.state.get_member(user_id)
        if member is None or not await self.gateway.has_member(user_id):
            raise MemberService.MemberNotFoundError(f"Member {user_id} not found")
        await grant_role(self.gateway, user_id, self.roles.expert, purpose="expert")
        self.state.reset_xp(user_id)
        member.xp = 0
        logger.info("Promoted %s", member.display_name)
        return member

    async def process_attendance(self, *, now: Optional[datetime] = None) -> AttendanceReport:
        return await self.attendance.run(now=now)

    async def sweep_expired_warnings(self, *, now: Optional[datetime] = None) -> List[str]:
        return await self.sweeper.sweep(now=now)


__all__ = ["MENTION_TOKENS", "MemberService"]
