"""Best-effort role updates.

Role changes are side effects on the chat platform. Each call is attempted
once; failures are logged and reported back as ``False`` so callers can keep
processing the rest of their batch.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..gateway import CommunityGateway

logger = logging.getLogger(__name__)


async def grant_role(
    gateway: CommunityGateway,
    user_id: str,
    role_id: Optional[int],
    *,
    purpose: str,
) -> bool:
    if role_id is None:
        logger.debug("Skipping %s role grant for %s; role not configured", purpose, user_id)
        return False
    try:
        await gateway.add_role(user_id, role_id)
    except Exception:
        logger.exception("Failed to grant %s role %s to %s", purpose, role_id, user_id)
        return False
    return True


async def revoke_roles(
    gateway: CommunityGateway,
    user_id: str,
    role_ids: Sequence[Optional[int]],
    *,
    purpose: str,
) -> bool:
    targets = [role for role in role_ids if role is not None]
    if not targets:
        logger.debug("Skipping %s role removal for %s; roles not configured", purpose, user_id)
        return False
    try:
        await gateway.remove_roles(user_id, targets)
    except Exception:
        logger.exception("Failed to remove %s roles %s from %s", purpose, targets, user_id)
        return False
    return True


__all__ = ["grant_role", "revoke_roles"]
