"""Grid cells produced by the reconcilers.

A submission slot is a closed union discriminated on ``kind``; every consumer
(scorer, CLI tables, report serialization) handles all three variants and
raises ``TypeError`` on anything else.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Iterator, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from traintrack.model.curriculum import AssignmentOptionality


class PrState(str, Enum):
    COMPLETE = "complete"
    REVIEWED = "reviewed"
    NEEDS_REVIEW = "needs-review"
    UNKNOWN = "unknown"


class Submission(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    number: int
    repo_name: str
    title: str
    display_text: str
    state: PrState
    updated_at: datetime


class Matched(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["matched"] = "matched"
    submission: Submission


class MissingButExpected(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["missing-expected"] = "missing-expected"
    due_at: datetime


class MissingButNotExpected(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["missing-not-expected"] = "missing-not-expected"
    due_at: datetime


SubmissionSlot = Annotated[
    Union[Matched, MissingButExpected, MissingButNotExpected],
    Field(discriminator="kind"),
]


def slot_label(slot: SubmissionSlot) -> str:
    """Short human label for a slot, as shown in report tables."""
    if isinstance(slot, Matched):
        return f"{slot.submission.display_text} ({slot.submission.state.value})"
    if isinstance(slot, MissingButExpected):
        return "missing"
    if isinstance(slot, MissingButNotExpected):
        return "not due"
    raise TypeError(f"Unhandled submission slot {slot!r}")


class AssignmentSlot(BaseModel):
    """One assignment column of a trainee's grid, carrying what scoring needs."""

    model_config = ConfigDict(frozen=True)

    title: str
    optionality: AssignmentOptionality = AssignmentOptionality.MANDATORY
    weight: int = 10
    slot: SubmissionSlot


class SprintSlots(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    slots: Tuple[AssignmentSlot, ...] = ()


class ModuleSlots(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    sprints: Tuple[SprintSlots, ...] = ()


class SubmissionGrid(BaseModel):
    """A trainee's slots in curriculum order (module -> sprint -> assignment)."""

    model_config = ConfigDict(frozen=True)

    modules: Tuple[ModuleSlots, ...] = ()

    def iter_slots(self) -> Iterator[AssignmentSlot]:
        for module in self.modules:
            for sprint in module.sprints:
                yield from sprint.slots

    def module(self, name: str) -> ModuleSlots:
        for module in self.modules:
            if module.name == name:
                return module
        raise KeyError(name)

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_slots())


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    UNKNOWN = "unknown"
    WRONG_DAY = "wrong-day"

    @property
    def label(self) -> str:
        return _ATTENDANCE_LABELS[self]


_ATTENDANCE_LABELS = {
    AttendanceStatus.PRESENT: "On time",
    AttendanceStatus.ABSENT: "Absent",
    AttendanceStatus.LATE: "Late",
    AttendanceStatus.UNKNOWN: "Unknown",
    AttendanceStatus.WRONG_DAY: "Wrong day",
}


class AttendanceSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    status: AttendanceStatus
    code: Optional[str] = None
    register_url: Optional[str] = None


class TraineeAttendance(BaseModel):
    """Scheduled-day slots plus check-ins that landed on unscheduled days."""

    model_config = ConfigDict(frozen=True)

    slots: Tuple[AttendanceSlot, ...] = ()
    wrong_day: Tuple[AttendanceSlot, ...] = ()


__all__ = [
    "AssignmentSlot",
    "AttendanceSlot",
    "AttendanceStatus",
    "Matched",
    "MissingButExpected",
    "MissingButNotExpected",
    "ModuleSlots",
    "PrState",
    "SprintSlots",
    "Submission",
    "SubmissionGrid",
    "SubmissionSlot",
    "TraineeAttendance",
    "slot_label",
]
