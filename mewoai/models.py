"""Core data models for the MeWoai bot."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    EXCUSED = "excused"
    ABSENT = "absent"
    ESCALATED = "escalated"


class ActivityOutcome(str, Enum):
    """Result of crediting a chat message to its author."""

    IGNORED = "ignored"
    MESSAGE = "message"
    MEDIA = "media"
    THROTTLED = "throttled"


class AnnouncementCategory(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    EVENT = "Event"
    SHOWCASE = "Showcase"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AnnouncementCategory":
        """Map a form value onto a category, defaulting to ``INFO``."""

        for category in cls:
            if value and category.value.lower() == value.strip().lower():
                return category
        return cls.INFO


@dataclass
class MemberRecord:
    user_id: str
    display_name: str
    warn_count: int = 0
    total_absences: int = 0
    xp: int = 0
    last_media_time: Optional[datetime] = None
    leave_reason: Optional[str] = None
    leave_requested_at: Optional[datetime] = None
    warning_expiry: Optional[datetime] = None


@dataclass(frozen=True)
class AbsenceOutcome:
    """Decision produced by the escalation engine for a single absence."""

    total_absences: int
    warn_count: int
    escalated: bool = False
    duration: Optional[timedelta] = None

    def expires_at(self, now: datetime) -> Optional[datetime]:
        if not self.escalated or self.duration is None:
            return None
        return now + self.duration


@dataclass(frozen=True)
class AttendanceLine:
    user_id: str
    display_name: str
    status: AttendanceStatus
    label: str
    css_class: str


@dataclass
class AttendanceReport:
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    lines: List[AttendanceLine] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        tally = Counter(line.status.value for line in self.lines)
        return {status.value: tally.get(status.value, 0) for status in AttendanceStatus}


@dataclass(frozen=True)
class ChannelInfo:
    id: int
    name: str


@dataclass(frozen=True)
class Announcement:
    channel_id: int
    title: str
    body: str
    category: AnnouncementCategory = AnnouncementCategory.INFO
    mention: Optional[str] = None
    attachment: Optional[Path] = None


@dataclass(frozen=True)
class DashboardStats:
    total: int
    warned: int
    top: Optional[MemberRecord]


__all__ = [
    "AbsenceOutcome",
    "ActivityOutcome",
    "Announcement",
    "AnnouncementCategory",
    "AttendanceLine",
    "AttendanceReport",
    "AttendanceStatus",
    "ChannelInfo",
    "DashboardStats",
    "MemberRecord",
]
