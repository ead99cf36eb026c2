from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from tests.factories import NOW, check_in, make_batch
from traintrack.core.config import AttendancePolicy
from traintrack.model.events import EventKind, UnmatchedReason
from traintrack.model.slots import AttendanceSlot, AttendanceStatus
from traintrack.reconcile.attendance import (
    attendance_fraction,
    reconcile_attendance,
    status_from_code,
    status_from_timestamp,
)
from traintrack.reconcile.unmatched import UnmatchedCollector

# Saturdays of the test batch that fall before NOW (Thursday 2026-01-22).
FIRST_CLASS = date(2026, 1, 10)
SECOND_CLASS = date(2026, 1, 17)
NEXT_CLASS = date(2026, 1, 24)


def _statuses(record):
    return {slot.day: slot.status for slot in record.slots}


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("present", AttendanceStatus.PRESENT),
        (" On Time ", AttendanceStatus.PRESENT),
        ("P", AttendanceStatus.PRESENT),
        ("late", AttendanceStatus.LATE),
        ("L", AttendanceStatus.LATE),
        ("absent", AttendanceStatus.ABSENT),
        ("excused", AttendanceStatus.UNKNOWN),
    ],
)
def test_status_from_code(code, expected) -> None:
    assert status_from_code(code) is expected


def test_status_from_timestamp_uses_region_time() -> None:
    policy = AttendancePolicy(class_start=time(10, 0), late_after_minutes=10)
    london = ZoneInfo("Europe/London")
    cape_town = ZoneInfo("Africa/Johannesburg")
    day = FIRST_CLASS
    assert status_from_timestamp(day, datetime(2026, 1, 10, 10, 10, tzinfo=timezone.utc), london, policy) is AttendanceStatus.PRESENT
    assert status_from_timestamp(day, datetime(2026, 1, 10, 10, 11, tzinfo=timezone.utc), london, policy) is AttendanceStatus.LATE
    assert status_from_timestamp(day, datetime(2026, 1, 10, 8, 5, tzinfo=timezone.utc), cape_town, policy) is AttendanceStatus.PRESENT
    assert status_from_timestamp(day, datetime(2026, 1, 10, 8, 15, tzinfo=timezone.utc), cape_town, policy) is AttendanceStatus.LATE


def test_scheduled_days_become_slots() -> None:
    batch = make_batch()
    collector = UnmatchedCollector()
    records = reconcile_attendance(
        [check_in("alice", FIRST_CLASS), check_in("Alice", SECOND_CLASS, "late")],
        batch,
        NOW,
        collector,
    )
    assert list(records) == ["alice", "carol", "dave"]

    alice = records["alice"]
    assert [slot.day for slot in alice.slots] == list(batch.scheduled_days)
    statuses = _statuses(alice)
    assert statuses[FIRST_CLASS] is AttendanceStatus.PRESENT
    assert statuses[SECOND_CLASS] is AttendanceStatus.LATE
    assert statuses[NEXT_CLASS] is AttendanceStatus.UNKNOWN

    carol = _statuses(records["carol"])
    assert carol[FIRST_CLASS] is AttendanceStatus.ABSENT
    assert carol[SECOND_CLASS] is AttendanceStatus.ABSENT
    assert carol[NEXT_CLASS] is AttendanceStatus.UNKNOWN
    assert collector.events() == ()
    assert collector.is_claimed(EventKind.ATTENDANCE, check_in("alice", FIRST_CLASS).identity)


def test_timestamp_check_in_is_classified_against_class_start() -> None:
    batch = make_batch()
    records = reconcile_attendance(
        [
            check_in("alice", FIRST_CLASS, None, timestamp=datetime(2026, 1, 10, 9, 58, tzinfo=timezone.utc)),
            check_in("alice", SECOND_CLASS, None, timestamp=datetime(2026, 1, 17, 10, 25, tzinfo=timezone.utc)),
        ],
        batch,
        NOW,
        UnmatchedCollector(),
        policy=AttendancePolicy(),
    )
    statuses = _statuses(records["alice"])
    assert statuses[FIRST_CLASS] is AttendanceStatus.PRESENT
    assert statuses[SECOND_CLASS] is AttendanceStatus.LATE


def test_conflicting_check_ins_are_unknown() -> None:
    batch = make_batch()
    records = reconcile_attendance(
        [
            check_in("alice", FIRST_CLASS, "present"),
            check_in("alice", FIRST_CLASS, "late"),
            check_in("carol", FIRST_CLASS, "present"),
            check_in("carol", FIRST_CLASS, None, timestamp=datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)),
        ],
        batch,
        NOW,
        UnmatchedCollector(),
    )
    assert _statuses(records["alice"])[FIRST_CLASS] is AttendanceStatus.UNKNOWN
    assert _statuses(records["carol"])[FIRST_CLASS] is AttendanceStatus.PRESENT


def test_unscheduled_check_in_is_a_wrong_day_marker() -> None:
    batch = make_batch()
    collector = UnmatchedCollector()
    records = reconcile_attendance([check_in("dave", date(2026, 1, 13), register_url="https://register/13")], batch, NOW, collector)
    dave = records["dave"]
    assert dave.wrong_day == (
        AttendanceSlot(day=date(2026, 1, 13), status=AttendanceStatus.WRONG_DAY, code="present", register_url="https://register/13"),
    )
    assert _statuses(dave)[FIRST_CLASS] is AttendanceStatus.ABSENT
    assert collector.events() == ()


def test_foreign_out_of_range_and_repeated_check_ins_are_collected() -> None:
    batch = make_batch()
    collector = UnmatchedCollector()
    stranger = check_in("zoe", FIRST_CLASS)
    too_late = check_in("dave", date(2026, 3, 7))
    duplicate = check_in("carol", FIRST_CLASS)
    reconcile_attendance([stranger, too_late, duplicate, duplicate], batch, NOW, collector)
    assert [(event.identity, event.reason) for event in collector.events()] == [
        (stranger.identity, UnmatchedReason.UNKNOWN_TRAINEE),
        (too_late.identity, UnmatchedReason.OUT_OF_RANGE),
        (f"{duplicate.identity}#2", UnmatchedReason.DUPLICATE),
    ]


def test_distinct_check_ins_with_the_same_code_are_all_placed() -> None:
    batch = make_batch()
    collector = UnmatchedCollector()
    first = check_in("alice", FIRST_CLASS, register_url="https://reg/1")
    second = check_in("alice", FIRST_CLASS, register_url="https://reg/2")
    records = reconcile_attendance([first, second], batch, NOW, collector)

    assert first.identity != second.identity
    assert _statuses(records["alice"])[FIRST_CLASS] is AttendanceStatus.PRESENT
    assert collector.events() == ()
    assert collector.is_claimed(EventKind.ATTENDANCE, first.identity)
    assert collector.is_claimed(EventKind.ATTENDANCE, second.identity)


def test_attendance_fraction_ignores_unknown_days() -> None:
    slots = [
        AttendanceSlot(day=FIRST_CLASS, status=AttendanceStatus.PRESENT),
        AttendanceSlot(day=SECOND_CLASS, status=AttendanceStatus.LATE),
        AttendanceSlot(day=NEXT_CLASS, status=AttendanceStatus.ABSENT),
        AttendanceSlot(day=date(2026, 1, 31), status=AttendanceStatus.UNKNOWN),
    ]
    assert attendance_fraction(slots) == (2, 3)
    assert attendance_fraction([]) == (0, 0)


def test_workers_do_not_change_the_result() -> None:
    logins = [f"trainee{index}" for index in range(10)]
    batch = make_batch(logins)
    events = []
    for index, login in enumerate(logins):
        if index % 2:
            events.append(check_in(login, FIRST_CLASS))
        if index % 3 == 0:
            events.append(check_in(login, SECOND_CLASS, "late"))
        events.append(check_in(f"ghost{index}", FIRST_CLASS))

    sequential, threaded = UnmatchedCollector(), UnmatchedCollector()
    assert reconcile_attendance(events, batch, NOW, sequential) == reconcile_attendance(events, batch, NOW, threaded, workers=3)
    assert sequential.events() == threaded.events()
