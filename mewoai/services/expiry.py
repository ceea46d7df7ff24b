"""Restores membership once a warning period lapses."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..config import RoleConfig
from ..gateway import CommunityGateway
from ..state import MemberState
from .roles import grant_role, revoke_roles

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Clears lapsed warnings and hands the member role back."""

    def __init__(self, state: MemberState, gateway: CommunityGateway, roles: RoleConfig) -> None:
        self._state = state
        self._gateway = gateway
        self._roles = roles

    async def sweep(self, *, now: Optional[datetime] = None) -> List[str]:
        """Process every expired warning and return the restored user ids."""

        now = now or datetime.now(timezone.utc)
        restored: List[str] = []
        for member in self._state.expired_warnings(now):
            await revoke_roles(
                self._gateway, member.user_id, self._roles.warning_role_ids(), purpose="warning"
            )
            await grant_role(self._gateway, member.user_id, self._roles.member, purpose="member")
            # Role drift is tolerated; a lapsed timer is cleared either way.
            if not self._state.clear_warning_expiry(member.user_id, lapsed_by=now):
                await self._reinstate(member.user_id)
                continue
            logger.info("Warning for %s lapsed; member role restored", member.display_name)
            restored.append(member.user_id)
        return restored

    async def _reinstate(self, user_id: str) -> None:
        current = self._state.get_member(user_id)
        if current is None or current.warning_expiry is None:
            return
        logger.info(
            "Warning for %s was renewed during the sweep; keeping level %d",
            current.display_name,
            current.warn_count,
        )
        await revoke_roles(self._gateway, user_id, [self._roles.member], purpose="member")
        await grant_role(
            self._gateway, user_id, self._roles.warning_role(current.warn_count), purpose="warning"
        )


__all__ = ["ExpirySweeper"]
