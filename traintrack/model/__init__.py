"""Pure data: curriculum, roster, external events and grid slots."""

from .curriculum import Assignment, AssignmentKey, AssignmentOptionality, Course, Module, Sprint
from .events import AttendanceEvent, EventKind, PrEvent, ReviewEvent, UnmatchedEvent, UnmatchedReason
from .roster import Batch, Region, Reviewer, Roster, Trainee, normalize_login
from .slots import (
    AttendanceSlot,
    AttendanceStatus,
    Matched,
    MissingButExpected,
    MissingButNotExpected,
    PrState,
    Submission,
    SubmissionGrid,
)

__all__ = [
    "Assignment",
    "AssignmentKey",
    "AssignmentOptionality",
    "AttendanceEvent",
    "AttendanceSlot",
    "AttendanceStatus",
    "Batch",
    "Course",
    "EventKind",
    "Matched",
    "MissingButExpected",
    "MissingButNotExpected",
    "Module",
    "PrEvent",
    "PrState",
    "Region",
    "ReviewEvent",
    "Reviewer",
    "Roster",
    "Sprint",
    "Submission",
    "SubmissionGrid",
    "Trainee",
    "UnmatchedEvent",
    "UnmatchedReason",
    "normalize_login",
]
