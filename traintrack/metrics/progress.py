"""Progress scorer: a trainee's grid as a fixed-point score and a status bucket."""

from __future__ import annotations

import math
from enum import Enum
from fractions import Fraction
from typing import Iterable, Optional, Tuple

from traintrack.core.config import ScoringPolicy, StatusThresholds, exact
from traintrack.model.curriculum import AssignmentOptionality
from traintrack.model.slots import (
    AssignmentSlot,
    AttendanceSlot,
    AttendanceStatus,
    Matched,
    MissingButExpected,
    MissingButNotExpected,
    PrState,
    SubmissionGrid,
)

SCORE_SCALE = 10000


class TraineeStatus(str, Enum):
    ON_TRACK = "on-track"
    BEHIND = "behind"
    AT_RISK = "at-risk"


def _state_credit(state: PrState, policy: ScoringPolicy) -> Fraction:
    credits = {
        PrState.COMPLETE: policy.complete_credit,
        PrState.REVIEWED: policy.reviewed_credit,
        PrState.NEEDS_REVIEW: policy.needs_review_credit,
        PrState.UNKNOWN: policy.unknown_credit,
    }
    return exact(credits[state])


def submission_terms(slot: AssignmentSlot, policy: ScoringPolicy) -> Tuple[Fraction, Fraction]:
    """``(numerator, denominator)`` contribution of one assignment slot."""
    weight = Fraction(slot.weight)
    cell = slot.slot
    if isinstance(cell, Matched):
        if slot.optionality is AssignmentOptionality.STRETCH:
            weight *= exact(policy.stretch_multiplier)
        return weight * _state_credit(cell.submission.state, policy), weight
    if isinstance(cell, MissingButExpected):
        if slot.optionality is AssignmentOptionality.STRETCH:
            weight *= exact(policy.missing_stretch_fraction)
        return Fraction(0), weight
    if isinstance(cell, MissingButNotExpected):
        return Fraction(0), Fraction(0)
    raise TypeError(f"Unhandled submission slot {cell!r}")


def attendance_terms(slot: AttendanceSlot, policy: ScoringPolicy) -> Tuple[Fraction, Fraction]:
    weight = Fraction(policy.attendance_weight)
    if slot.status is AttendanceStatus.PRESENT:
        return weight * exact(policy.present_credit), weight
    if slot.status is AttendanceStatus.LATE:
        return weight * exact(policy.late_credit), weight
    if slot.status is AttendanceStatus.ABSENT:
        return Fraction(0), weight
    # unknown days and wrong-day markers are not scored
    return Fraction(0), Fraction(0)


def score(
    grid: SubmissionGrid,
    attendance: Optional[Iterable[AttendanceSlot]] = None,
    policy: Optional[ScoringPolicy] = None,
) -> int:
    """Weighted share of credit earned, scaled to ``0..10000`` and rounded half-up.

    Slots that are not yet due are left out of the denominator, so a trainee
    is never penalised for work that is not expected yet. An empty
    denominator scores 0.
    """
    policy = policy or ScoringPolicy()
    numerator = denominator = Fraction(0)
    for slot in grid.iter_slots():
        earned, possible = submission_terms(slot, policy)
        numerator += earned
        denominator += possible
    if attendance is not None and policy.include_attendance:
        for day in attendance:
            earned, possible = attendance_terms(day, policy)
            numerator += earned
            denominator += possible
    if denominator == 0:
        return 0
    value = math.floor(SCORE_SCALE * numerator / denominator + Fraction(1, 2))
    return max(0, min(SCORE_SCALE, value))


def trainee_status(value: int, thresholds: Optional[StatusThresholds] = None) -> TraineeStatus:
    thresholds = thresholds or StatusThresholds()
    if value >= thresholds.on_track_at:
        return TraineeStatus.ON_TRACK
    if value < thresholds.at_risk_below:
        return TraineeStatus.AT_RISK
    return TraineeStatus.BEHIND


__all__ = ["SCORE_SCALE", "TraineeStatus", "attendance_terms", "score", "submission_terms", "trainee_status"]
