"""Member record persistence."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from .models import MemberRecord

logger = logging.getLogger(__name__)

_DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS members (
    user_id TEXT PRIMARY KEY,
    display_name TEXT NOT NULL,
    warn_count INTEGER NOT NULL DEFAULT 0,
    total_absences INTEGER NOT NULL DEFAULT 0,
    xp INTEGER NOT NULL DEFAULT 0,
    last_media_time TEXT,
    leave_reason TEXT,
    leave_requested_at TEXT,
    warning_expiry TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_members_warning_expiry
    ON members (warning_expiry);
CREATE INDEX IF NOT EXISTS idx_members_xp
    ON members (xp DESC);
"""

_MEMBER_COLUMNS = (
    "user_id, display_name, warn_count, total_absences, xp, "
    "last_media_time, leave_reason, leave_requested_at, warning_expiry"
)


def _to_text(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _row_to_member(row: Tuple) -> MemberRecord:
    return MemberRecord(
        user_id=row[0],
        display_name=row[1],
        warn_count=row[2],
        total_absences=row[3],
        xp=row[4],
        last_media_time=_from_text(row[5]),
        leave_reason=row[6],
        leave_requested_at=_from_text(row[7]),
        warning_expiry=_from_text(row[8]),
    )


class MemberExistsError(RuntimeError):
    """Raised when creating a record for an identity that already has one."""


class MemberState:
    """High level interface for working with persistent member records."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        with closing(self._connect()) as conn:
            conn.executescript(_DB_SCHEMA)
            conn.commit()

    # Record lifecycle ------------------------------------------------
    def create_member(
        self, user_id: str, display_name: str, *, now: Optional[datetime] = None
    ) -> MemberRecord:
        created = now or datetime.now(timezone.utc)
        with closing(self._connect()) as conn:
            try:
                conn.execute(
                    "INSERT INTO members (user_id, display_name, created_at) VALUES (?, ?, ?)",
                    (user_id, display_name, _to_text(created)),
                )
            except sqlite3.IntegrityError as exc:
                raise MemberExistsError(user_id) from exc
            conn.commit()
        return MemberRecord(user_id=user_id, display_name=display_name)

    def get_or_create_member(
        self, user_id: str, display_name: str, *, now: Optional[datetime] = None
    ) -> MemberRecord:
        """Fetch the record for ``user_id``, inserting a default one if absent."""

        created = now or datetime.now(timezone.utc)
        with closing(self._connect()) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO members (user_id, display_name, created_at) VALUES (?, ?, ?)",
                (user_id, display_name, _to_text(created)),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return _row_to_member(row)

    def get_member(self, user_id: str) -> Optional[MemberRecord]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        return _row_to_member(row)

    def save_member(self, member: MemberRecord) -> None:
        with closing(self._connect()) as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET display_name = ?, warn_count = ?, total_absences = ?, xp = ?,
                    last_media_time = ?, leave_reason = ?, leave_requested_at = ?,
                    warning_expiry = ?
                WHERE user_id = ?
                """,
                (
                    member.display_name,
                    member.warn_count,
                    member.total_absences,
                    member.xp,
                    _to_text(member.last_media_time),
                    member.leave_reason,
                    _to_text(member.leave_requested_at),
                    _to_text(member.warning_expiry),
                    member.user_id,
                ),
            )
            conn.commit()
        if cursor.rowcount == 0:
            logger.warning("Saved member %s has no stored record", member.user_id)

    def all_members(self) -> List[MemberRecord]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members ORDER BY created_at, user_id"
            ).fetchall()
        return [_row_to_member(row) for row in rows]

    # Targeted updates ------------------------------------------------
    def set_leave(
        self,
        user_id: str,
        display_name: str,
        reason: str,
        *,
        now: Optional[datetime] = None,
    ) -> MemberRecord:
        requested = now or datetime.now(timezone.utc)
        member = self.get_or_create_member(user_id, display_name, now=requested)
        with closing(self._connect()) as conn:
            conn.execute(
                "UPDATE members SET leave_reason = ?, leave_requested_at = ?, display_name = ? "
                "WHERE user_id = ?",
                (reason, _to_text(requested), display_name, user_id),
            )
            conn.commit()
        member.leave_reason = reason
        member.leave_requested_at = requested
        member.display_name = display_name
        return member

    def reset_xp(self, user_id: str) -> bool:
        with closing(self._connect()) as conn:
            cursor = conn.execute("UPDATE members SET xp = 0 WHERE user_id = ?", (user_id,))
            conn.commit()
        return cursor.rowcount > 0

    def clear_leave(self, user_id: str, requested_at: Optional[datetime]) -> bool:
        """Consume the leave request made at ``requested_at``.

        A newer request stored since then is left in place.
        """

        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "UPDATE members SET leave_reason = NULL "
                "WHERE user_id = ? AND leave_requested_at IS ?",
                (user_id, _to_text(requested_at)),
            )
            conn.commit()
        return cursor.rowcount > 0

    def record_absence(
        self,
        user_id: str,
        *,
        total_absences: int,
        penalty: int,
        warn_count: Optional[int] = None,
        warning_expiry: Optional[datetime] = None,
    ) -> None:
        """Store an absence, deducting ``penalty`` from the current XP.

        Warning fields are only written when ``warn_count`` is given.
        """

        with closing(self._connect()) as conn:
            if warn_count is None:
                conn.execute(
                    "UPDATE members SET total_absences = ?, xp = MAX(0, xp - ?) "
                    "WHERE user_id = ?",
                    (total_absences, penalty, user_id),
                )
            else:
                conn.execute(
                    "UPDATE members SET total_absences = ?, xp = MAX(0, xp - ?), "
                    "warn_count = ?, warning_expiry = ? WHERE user_id = ?",
                    (total_absences, penalty, warn_count, _to_text(warning_expiry), user_id),
                )
            conn.commit()

    def clear_warning_expiry(self, user_id: str, *, lapsed_by: datetime) -> bool:
        """Clear the expiry only if it is still at or before ``lapsed_by``."""

        with closing(self._connect()) as conn:
            cursor = conn.execute(
                "UPDATE members SET warning_expiry = NULL "
                "WHERE user_id = ? AND warning_expiry IS NOT NULL AND warning_expiry <= ?",
                (user_id, _to_text(lapsed_by)),
            )
            conn.commit()
        return cursor.rowcount > 0

    # Queries ---------------------------------------------------------
    def expired_warnings(self, now: datetime) -> List[MemberRecord]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members "
                "WHERE warning_expiry IS NOT NULL AND warning_expiry <= ? "
                "ORDER BY warning_expiry",
                (_to_text(now),),
            ).fetchall()
        return [_row_to_member(row) for row in rows]

    def top_members_by_xp(self, limit: int) -> List[MemberRecord]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members "
                "ORDER BY xp DESC, display_name ASC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_member(row) for row in rows]

    def count_members(self) -> int:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT COUNT(*) FROM members").fetchone()
        return int(row[0])

    def count_warned_members(self) -> int:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT COUNT(*) FROM members WHERE warn_count > 0").fetchone()
        return int(row[0])


__all__ = ["MemberExistsError", "MemberState"]
