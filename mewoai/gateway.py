"""Interface between the member services and the chat platform."""
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Set

from .models import Announcement, ChannelInfo


class GatewayError(RuntimeError):
    """Raised when the chat platform rejects or cannot perform a request."""


class CommunityGateway(Protocol):
    """Role, presence and messaging operations the services depend on."""

    async def add_role(self, user_id: str, role_id: int) -> None:
        ...

    async def remove_roles(self, user_id: str, role_ids: Sequence[int]) -> None:
        ...

    def venue_member_ids(self, venue_name: str) -> Optional[Set[str]]:
        """Ids of users currently in the venue, or ``None`` if it does not exist."""
        ...

    def announcement_channels(self) -> List[ChannelInfo]:
        ...

    async def send_announcement(self, announcement: Announcement) -> bool:
        """Deliver an announcement; ``False`` means the channel is unknown."""
        ...

    async def has_member(self, user_id: str) -> bool:
        ...


__all__ = ["CommunityGateway", "GatewayError"]
