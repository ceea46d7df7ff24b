"""Warning escalation rules for repeated absences.

Every ``interval``-th absence raises the member's warning tier by one. The new
tier selects how long the member keeps the warning role before the expiry
sweep restores their membership role. The functions here perform no I/O so
the attendance processor and the tests can share them directly.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Mapping

from .models import AbsenceOutcome

DEFAULT_INTERVAL = 5
DEFAULT_DURATIONS: Mapping[int, timedelta] = {
    1: timedelta(days=2),
    2: timedelta(days=5),
    3: timedelta(days=5),
}


def crosses_boundary(total_absences: int, interval: int = DEFAULT_INTERVAL) -> bool:
    return total_absences > 0 and total_absences % interval == 0


def duration_for_tier(
    tier: int, durations: Mapping[int, timedelta] = DEFAULT_DURATIONS
) -> timedelta:
    """Look up the punishment length for ``tier``.

    Tiers beyond the table reuse the largest configured tier.
    """

    if tier <= 0:
        raise ValueError(f"warning tier must be positive, got {tier}")
    if tier in durations:
        return durations[tier]
    eligible = [key for key in durations if key <= tier]
    key = max(eligible) if eligible else min(durations)
    return durations[key]


def evaluate_absence(
    total_absences: int,
    warn_count: int,
    *,
    interval: int = DEFAULT_INTERVAL,
    durations: Mapping[int, timedelta] = DEFAULT_DURATIONS,
) -> AbsenceOutcome:
    """Decide what an absence means for a member.

    ``total_absences`` must already include the absence being evaluated.
    """

    if not crosses_boundary(total_absences, interval):
        return AbsenceOutcome(total_absences=total_absences, warn_count=warn_count)
    tier = warn_count + 1
    return AbsenceOutcome(
        total_absences=total_absences,
        warn_count=tier,
        escalated=True,
        duration=duration_for_tier(tier, durations),
    )


__all__ = [
    "DEFAULT_DURATIONS",
    "DEFAULT_INTERVAL",
    "crosses_boundary",
    "duration_for_tier",
    "evaluate_absence",
]
