"""Tests for attendance processing and warning escalation side effects."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mewoai.models import AttendanceStatus
from mewoai.service import MemberService

NOW = datetime(2026, 6, 1, 20, 0, tzinfo=timezone.utc)


def _seed(service, user_id, name, **fields):
    member = service.state.create_member(user_id, name)
    for key, value in fields.items():
        setattr(member, key, value)
    service.state.save_member(member)
    return member


@pytest.mark.asyncio
async def test_present_takes_priority_over_leave(service, gateway):
    _seed(service, "1", "alice", leave_reason="doctor", xp=20)
    gateway.venue_members = {"1"}

    report = await service.process_attendance(now=NOW)

    [line] = report.lines
    assert line.status is AttendanceStatus.PRESENT
    assert line.label == "PRESENT"
    stored = service.state.get_member("1")
    assert stored.leave_reason is None
    assert stored.xp == 20
    assert stored.total_absences == 0


@pytest.mark.asyncio
async def test_leave_excuses_once(service):
    _seed(service, "1", "alice", leave_reason="exam", xp=20)

    first = await service.process_attendance(now=NOW)
    second = await service.process_attendance(now=NOW + timedelta(days=1))

    assert first.lines[0].status is AttendanceStatus.EXCUSED
    assert first.lines[0].label == "EXCUSED (exam)"
    assert second.lines[0].status is AttendanceStatus.ABSENT
    stored = service.state.get_member("1")
    assert stored.leave_reason is None
    assert stored.total_absences == 1
    assert stored.xp == 10


@pytest.mark.asyncio
async def test_absence_penalty_never_goes_below_zero(service):
    _seed(service, "1", "alice", xp=25)

    for day in range(4):
        await service.process_attendance(now=NOW + timedelta(days=day))

    stored = service.state.get_member("1")
    assert stored.xp == 0
    assert stored.total_absences == 4
    assert stored.warn_count == 0
    assert stored.warning_expiry is None


@pytest.mark.asyncio
async def test_fifth_absence_escalates_and_swaps_roles(service, gateway, roles):
    _seed(service, "1", "alice", total_absences=4, xp=50)
    gateway.roles["1"] = {roles.member}

    report = await service.process_attendance(now=NOW)

    [line] = report.lines
    assert line.status is AttendanceStatus.ESCALATED
    assert line.label == "ABSENT -> WARNING LEVEL 1"
    stored = service.state.get_member("1")
    assert stored.warn_count == 1
    assert stored.total_absences == 5
    assert stored.xp == 40
    assert stored.warning_expiry == NOW + timedelta(days=2)
    assert gateway.roles["1"] == {roles.warning_role(1)}
    assert gateway.calls == [
        ("remove", "1", (roles.member,)),
        ("remove", "1", tuple(roles.warning_role_ids())),
        ("add", "1", (roles.warning_role(1),)),
    ]


@pytest.mark.asyncio
async def test_third_and_later_tiers_use_last_warning_role(service, gateway, roles):
    _seed(service, "1", "alice", total_absences=19, warn_count=3)

    await service.process_attendance(now=NOW)

    stored = service.state.get_member("1")
    assert stored.warn_count == 4
    assert stored.warning_expiry == NOW + timedelta(days=5)
    assert gateway.roles["1"] == {roles.warning_role(3)}


@pytest.mark.asyncio
async def test_role_failure_for_one_member_does_not_block_others(service, gateway, roles):
    _seed(service, "1", "alice", total_absences=4)
    _seed(service, "2", "bob", total_absences=9, warn_count=1)
    _seed(service, "3", "carol")
    gateway.failing_users.add("1")

    report = await service.process_attendance(now=NOW)

    assert [line.status for line in report.lines] == [
        AttendanceStatus.ESCALATED,
        AttendanceStatus.ESCALATED,
        AttendanceStatus.ABSENT,
    ]
    alice = service.state.get_member("1")
    assert alice.warn_count == 1
    assert alice.warning_expiry == NOW + timedelta(days=2)
    assert service.state.get_member("2").warn_count == 2
    assert gateway.roles["2"] == {roles.warning_role(2)}
    assert service.state.get_member("3").total_absences == 1


@pytest.mark.asyncio
async def test_missing_venue_aborts_without_changes(service, gateway):
    _seed(service, "1", "alice", xp=30, leave_reason="trip")
    gateway.venue_exists = False

    with pytest.raises(MemberService.VenueNotFoundError):
        await service.process_attendance(now=NOW)

    stored = service.state.get_member("1")
    assert stored.xp == 30
    assert stored.leave_reason == "trip"


@pytest.mark.asyncio
async def test_report_counts(service, gateway):
    _seed(service, "1", "alice")
    _seed(service, "2", "bob", leave_reason="sick")
    _seed(service, "3", "carol")
    _seed(service, "4", "dave", total_absences=4)
    gateway.venue_members = {"1"}

    report = await service.process_attendance(now=NOW)

    assert report.counts() == {"present": 1, "excused": 1, "absent": 1, "escalated": 1}
    assert report.lines[2].label == "ABSENT (total: 1)"
    assert report.processed_at == NOW


@pytest.mark.asyncio
async def test_activity_and_leave_during_pass_are_kept(service, gateway):
    _seed(service, "1", "alice", total_absences=4)
    _seed(service, "2", "bob", xp=20)
    _seed(service, "3", "carol", xp=30)
    gateway.venue_members = {"2"}
    remove_roles = gateway.remove_roles
    chatted = False

    async def remove_roles_with_chatter(user_id, role_ids):
        nonlocal chatted
        await remove_roles(user_id, role_ids)
        if not chatted:
            chatted = True
            service.record_activity("2", has_media=False, now=NOW)
            service.record_activity("3", has_media=True, now=NOW)
            service.request_leave("3", "carol", "exam", now=NOW)

    gateway.remove_roles = remove_roles_with_chatter

    report = await service.process_attendance(now=NOW)

    assert [line.status for line in report.lines] == [
        AttendanceStatus.ESCALATED,
        AttendanceStatus.PRESENT,
        AttendanceStatus.ABSENT,
    ]
    bob = service.state.get_member("2")
    assert bob.xp == 25
    carol = service.state.get_member("3")
    assert carol.xp == 35
    assert carol.last_media_time == NOW
    assert carol.leave_reason == "exam"
    assert carol.total_absences == 1
