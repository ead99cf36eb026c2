"""Attendance reconciler: one classified slot per trainee per scheduled class day."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from traintrack.core.config import AttendancePolicy
from traintrack.model.events import AttendanceEvent, EventKind, UnmatchedReason, unmatched_from
from traintrack.model.roster import Batch, Trainee
from traintrack.model.slots import AttendanceSlot, AttendanceStatus, TraineeAttendance
from traintrack.reconcile.fanout import map_in_order
from traintrack.reconcile.unmatched import UnmatchedCollector
from traintrack.utils.dates import as_utc

LOGGER = logging.getLogger(__name__)

_CODES = {
    "present": AttendanceStatus.PRESENT,
    "p": AttendanceStatus.PRESENT,
    "on-time": AttendanceStatus.PRESENT,
    "on time": AttendanceStatus.PRESENT,
    "late": AttendanceStatus.LATE,
    "l": AttendanceStatus.LATE,
    "absent": AttendanceStatus.ABSENT,
    "a": AttendanceStatus.ABSENT,
}


def status_from_code(code: str) -> AttendanceStatus:
    return _CODES.get(code.strip().lower(), AttendanceStatus.UNKNOWN)


def status_from_timestamp(day: date, timestamp: datetime, tz: tzinfo, policy: AttendancePolicy) -> AttendanceStatus:
    """Late when the check-in is after class start plus the grace period, in the region's time."""
    starts = datetime.combine(day, policy.class_start, tzinfo=tz)
    cutoff = starts + timedelta(minutes=policy.late_after_minutes)
    return AttendanceStatus.LATE if as_utc(timestamp) > cutoff else AttendanceStatus.PRESENT


def check_in_status(event: AttendanceEvent, tz: tzinfo, policy: AttendancePolicy) -> AttendanceStatus:
    if event.code is not None and event.code.strip():
        return status_from_code(event.code)
    if event.timestamp is not None:
        return status_from_timestamp(event.day, event.timestamp, tz, policy)
    return AttendanceStatus.UNKNOWN


def _combine(day: date, check_ins: Sequence[AttendanceEvent], tz: tzinfo, policy: AttendancePolicy) -> AttendanceSlot:
    statuses = {check_in_status(event, tz, policy) for event in check_ins}
    status = statuses.pop() if len(statuses) == 1 else AttendanceStatus.UNKNOWN
    if status is AttendanceStatus.UNKNOWN and len(check_ins) > 1:
        LOGGER.debug("Conflicting check-ins for %s on %s", check_ins[0].login, day.isoformat())
    first = check_ins[0]
    return AttendanceSlot(day=day, status=status, code=first.code, register_url=first.register_url)


def reconcile_trainee_attendance(
    trainee: Trainee,
    check_ins: Sequence[AttendanceEvent],
    batch: Batch,
    now: datetime,
    policy: AttendancePolicy,
    collector: UnmatchedCollector,
) -> TraineeAttendance:
    tz = batch.region_for(trainee).tz
    today = as_utc(now).astimezone(tz).date()
    scheduled = set(batch.scheduled_days)
    by_day: Dict[date, List[AttendanceEvent]] = defaultdict(list)
    for event in check_ins:
        by_day[event.day].append(event)
        collector.claim(EventKind.ATTENDANCE, event.identity)

    slots = []
    for day in batch.scheduled_days:
        if by_day.get(day):
            slots.append(_combine(day, by_day[day], tz, policy))
        elif today > day:
            slots.append(AttendanceSlot(day=day, status=AttendanceStatus.ABSENT))
        else:
            slots.append(AttendanceSlot(day=day, status=AttendanceStatus.UNKNOWN))

    wrong_day = []
    for day in sorted(by_day):
        if day in scheduled:
            continue
        first = by_day[day][0]
        wrong_day.append(
            AttendanceSlot(day=day, status=AttendanceStatus.WRONG_DAY, code=first.code, register_url=first.register_url)
        )
    return TraineeAttendance(slots=tuple(slots), wrong_day=tuple(wrong_day))


def partition_check_ins(
    events: Iterable[AttendanceEvent], batch: Batch, collector: UnmatchedCollector
) -> Dict[str, List[AttendanceEvent]]:
    """Group check-ins by trainee; foreign logins, out-of-range dates and repeated records go to ``collector``."""
    grouped: Dict[str, List[AttendanceEvent]] = {key: [] for key in batch.trainee_keys()}
    copies: Dict[str, int] = {}
    for event in events:
        if event.trainee_key not in grouped:
            collector.add(unmatched_from(event, UnmatchedReason.UNKNOWN_TRAINEE, detail=f"{event.login} is not a trainee of {batch.name}"))
            continue
        if not batch.in_range(event.day):
            collector.add(
                unmatched_from(
                    event,
                    UnmatchedReason.OUT_OF_RANGE,
                    detail=f"{event.day.isoformat()} is outside {batch.start_date.isoformat()}..{batch.end_date.isoformat()}",
                )
            )
            continue
        copies[event.identity] = copies.get(event.identity, 0) + 1
        if copies[event.identity] > 1:
            collector.add(
                unmatched_from(
                    event,
                    UnmatchedReason.DUPLICATE,
                    detail="same trainee, day and check-in as an earlier record",
                    identity=f"{event.identity}#{copies[event.identity]}",
                )
            )
            continue
        grouped[event.trainee_key].append(event)
    return grouped


def reconcile_attendance(
    events: Iterable[AttendanceEvent],
    batch: Batch,
    now: datetime,
    collector: UnmatchedCollector,
    *,
    policy: Optional[AttendancePolicy] = None,
    workers: int = 1,
) -> Dict[str, TraineeAttendance]:
    """Return ``{trainee login key -> attendance}`` in roster order."""
    policy = policy or AttendancePolicy()
    grouped = partition_check_ins(events, batch, collector)

    def _one(trainee: Trainee) -> Tuple[TraineeAttendance, UnmatchedCollector]:
        local = UnmatchedCollector()
        return reconcile_trainee_attendance(trainee, grouped[trainee.key], batch, now, policy, local), local

    results = map_in_order(_one, list(batch.trainees), workers=workers)
    attendance: Dict[str, TraineeAttendance] = {}
    for trainee, (record, local) in zip(batch.trainees, results):
        collector.merge(local)
        attendance[trainee.key] = record
    return attendance


def attendance_fraction(slots: Iterable[AttendanceSlot]) -> Tuple[int, int]:
    """``(attended, counted)``: present and late attend, unknown days are not counted."""
    attended = counted = 0
    for slot in slots:
        if slot.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE):
            attended += 1
            counted += 1
        elif slot.status is AttendanceStatus.ABSENT:
            counted += 1
    return attended, counted


__all__ = [
    "attendance_fraction",
    "check_in_status",
    "partition_check_ins",
    "reconcile_attendance",
    "reconcile_trainee_attendance",
    "status_from_code",
    "status_from_timestamp",
]
