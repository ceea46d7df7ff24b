"""Attendance tally for registered members."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Set

from ..config import RoleConfig, Settings
from ..escalation import evaluate_absence
from ..gateway import CommunityGateway
from ..models import AttendanceLine, AttendanceReport, AttendanceStatus, MemberRecord
from ..state import MemberState
from .roles import grant_role, revoke_roles

logger = logging.getLogger(__name__)


class VenueNotFoundError(LookupError):
    """Raised when the venue channel cannot be located."""


class AttendanceProcessor:
    """Classifies every member as present, excused or absent.

    Classification works on a snapshot taken when the pass starts, but each
    member's result is written with targeted updates so chat activity and
    leave requests stored during the pass are kept. Records are updated
    before role changes are attempted, so a platform failure for one member
    never loses that member's counters or blocks the others.
    """

    def __init__(
        self,
        state: MemberState,
        gateway: CommunityGateway,
        settings: Settings,
        roles: RoleConfig,
    ) -> None:
        self._state = state
        self._gateway = gateway
        self._settings = settings
        self._roles = roles

    async def run(self, *, now: Optional[datetime] = None) -> AttendanceReport:
        now = now or datetime.now(timezone.utc)
        venue = self._settings.venue_channel
        present_ids = self._gateway.venue_member_ids(venue)
        if present_ids is None:
            raise VenueNotFoundError(venue)

        members = self._state.all_members()
        report = AttendanceReport(processed_at=now)
        for member in members:
            line, escalated_tier = self._process(member, present_ids, now)
            if escalated_tier is not None:
                await self._apply_warning(member.user_id, escalated_tier)
            report.lines.append(line)

        counts = report.counts()
        logger.info(
            "Processed attendance for %d members: %d present, %d excused, %d absent, %d escalated",
            len(report.lines),
            counts["present"],
            counts["excused"],
            counts["absent"],
            counts["escalated"],
        )
        return report

    def _process(
        self, member: MemberRecord, present_ids: Set[str], now: datetime
    ) -> tuple[AttendanceLine, Optional[int]]:
        if member.user_id in present_ids:
            if member.leave_reason:
                self._state.clear_leave(member.user_id, member.leave_requested_at)
            return self._line(member, AttendanceStatus.PRESENT, "PRESENT", "text-success fw-bold"), None

        if member.leave_reason:
            self._state.clear_leave(member.user_id, member.leave_requested_at)
            return (
                self._line(
                    member,
                    AttendanceStatus.EXCUSED,
                    f"EXCUSED ({member.leave_reason})",
                    "text-warning fw-bold",
                ),
                None,
            )

        total = member.total_absences + 1
        penalty = self._settings.absence_penalty
        outcome = evaluate_absence(
            total,
            member.warn_count,
            interval=self._settings.escalation_interval,
            durations=self._settings.warning_durations,
        )
        if not outcome.escalated:
            self._state.record_absence(member.user_id, total_absences=total, penalty=penalty)
            label = f"ABSENT (total: {total})"
            return self._line(member, AttendanceStatus.ABSENT, label, "text-danger"), None

        self._state.record_absence(
            member.user_id,
            total_absences=total,
            penalty=penalty,
            warn_count=outcome.warn_count,
            warning_expiry=outcome.expires_at(now),
        )
        line = self._line(
            member,
            AttendanceStatus.ESCALATED,
            f"ABSENT -> WARNING LEVEL {outcome.warn_count}",
            "text-danger fw-bold border border-danger p-2 rounded",
        )
        return line, outcome.warn_count

    @staticmethod
    def _line(
        member: MemberRecord, status: AttendanceStatus, label: str, css_class: str
    ) -> AttendanceLine:
        return AttendanceLine(
            user_id=member.user_id,
            display_name=member.display_name,
            status=status,
            label=label,
            css_class=css_class,
        )

    async def _apply_warning(self, user_id: str, tier: int) -> None:
        logger.info("Member %s escalated to warning level %d", user_id, tier)
        await revoke_roles(self._gateway, user_id, [self._roles.member], purpose="member")
        await revoke_roles(
            self._gateway, user_id, self._roles.warning_role_ids(), purpose="previous warning"
        )
        await grant_role(self._gateway, user_id, self._roles.warning_role(tier), purpose="warning")


__all__ = ["AttendanceProcessor", "VenueNotFoundError"]
