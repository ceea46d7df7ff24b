"""Shared fixtures: an in-memory chat platform and a fresh member service."""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from mewoai.config import RoleConfig, SettingsLoader
from mewoai.gateway import GatewayError
from mewoai.models import Announcement, ChannelInfo
from mewoai.service import MemberService
from mewoai.state import MemberState

MEMBER_ROLE = 100
WARNING_ROLES = (201, 202, 203)
EXPERT_ROLE = 300


class FakeGateway:
    """Records role changes and announcements instead of talking to Discord."""

    def __init__(self) -> None:
        self.roles: Dict[str, Set[int]] = defaultdict(set)
        self.calls: List[Tuple[str, str, Tuple[int, ...]]] = []
        self.failing_users: Set[str] = set()
        self.venue_members: Set[str] = set()
        self.venue_exists = True
        self.channels: Dict[int, str] = {1: "general", 2: "announcements"}
        self.sent: List[Announcement] = []
        self.fail_send = False
        self.guild_members: Optional[Set[str]] = None

    async def add_role(self, user_id: str, role_id: int) -> None:
        self.calls.append(("add", user_id, (role_id,)))
        if user_id in self.failing_users:
            raise GatewayError(f"cannot update {user_id}")
        self.roles[user_id].add(role_id)

    async def remove_roles(self, user_id: str, role_ids: Sequence[int]) -> None:
        self.calls.append(("remove", user_id, tuple(role_ids)))
        if user_id in self.failing_users:
            raise GatewayError(f"cannot update {user_id}")
        self.roles[user_id].difference_update(role_ids)

    def venue_member_ids(self, venue_name: str) -> Optional[Set[str]]:
        if not self.venue_exists:
            return None
        return set(self.venue_members)

    def announcement_channels(self) -> List[ChannelInfo]:
        return [ChannelInfo(id=cid, name=name) for cid, name in self.channels.items()]

    async def send_announcement(self, announcement: Announcement) -> bool:
        if announcement.channel_id not in self.channels:
            return False
        if self.fail_send:
            raise GatewayError("send failed")
        self.sent.append(announcement)
        return True

    async def has_member(self, user_id: str) -> bool:
        return self.guild_members is None or user_id in self.guild_members


@pytest.fixture
def settings():
    return SettingsLoader().load()


@pytest.fixture
def roles():
    return RoleConfig(member=MEMBER_ROLE, warnings=WARNING_ROLES, expert=EXPERT_ROLE)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def state(tmp_path):
    return MemberState(tmp_path / "members.db")


@pytest.fixture
def service(state, gateway, settings, roles):
    return MemberService(state, gateway, settings=settings, roles=roles)
