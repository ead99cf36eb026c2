from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from traintrack.core.config import ScoringPolicy, StatusThresholds
from traintrack.metrics.progress import TraineeStatus, score, submission_terms, trainee_status
from traintrack.model.curriculum import AssignmentOptionality
from traintrack.model.slots import (
    AssignmentSlot,
    AttendanceSlot,
    AttendanceStatus,
    Matched,
    MissingButExpected,
    MissingButNotExpected,
    ModuleSlots,
    PrState,
    SprintSlots,
    Submission,
    SubmissionGrid,
)

DUE = datetime(2026, 1, 12, tzinfo=timezone.utc)
STRETCH = AssignmentOptionality.STRETCH


def matched(state: PrState, *, weight: int = 10, optionality: AssignmentOptionality = AssignmentOptionality.MANDATORY) -> AssignmentSlot:
    submission = Submission(
        url="https://github.com/org/repo/pull/1",
        number=1,
        repo_name="org/repo",
        title="Sprint 1 Capstone",
        display_text="#1",
        state=state,
        updated_at=DUE,
    )
    return AssignmentSlot(title="a", optionality=optionality, weight=weight, slot=Matched(submission=submission))


def missing(*, weight: int = 10, optionality: AssignmentOptionality = AssignmentOptionality.MANDATORY) -> AssignmentSlot:
    return AssignmentSlot(title="m", optionality=optionality, weight=weight, slot=MissingButExpected(due_at=DUE))


def not_due(*, weight: int = 10) -> AssignmentSlot:
    return AssignmentSlot(title="n", weight=weight, slot=MissingButNotExpected(due_at=DUE))


def grid(*slots: AssignmentSlot) -> SubmissionGrid:
    return SubmissionGrid(modules=(ModuleSlots(name="Capstone", sprints=(SprintSlots(number=1, slots=slots),)),))


def day(status: AttendanceStatus) -> AttendanceSlot:
    return AttendanceSlot(day=date(2026, 1, 10), status=status)


def test_complete_and_missing_score_half() -> None:
    assert score(grid(matched(PrState.COMPLETE), missing())) == 5000


def test_state_credits() -> None:
    assert score(grid(matched(PrState.REVIEWED))) == 6000
    assert score(grid(matched(PrState.NEEDS_REVIEW))) == 6000
    assert score(grid(matched(PrState.UNKNOWN))) == 2000
    assert score(grid(matched(PrState.COMPLETE))) == 10000


def test_stretch_weighting() -> None:
    # 12 / 22 = 0.54545...
    assert score(grid(matched(PrState.COMPLETE, optionality=STRETCH), missing())) == 5455
    # 10 / (10 + 2)
    assert score(grid(matched(PrState.COMPLETE), missing(optionality=STRETCH))) == 8333


def test_rounds_half_up() -> None:
    # 1 / 32 = 312.5 on the 10000 scale
    assert score(grid(matched(PrState.COMPLETE, weight=1), missing(weight=31))) == 313


def test_slots_not_yet_due_are_left_out() -> None:
    assert score(grid(matched(PrState.COMPLETE), not_due(weight=50))) == 10000
    assert score(grid(not_due())) == 0


def test_empty_grid_scores_zero() -> None:
    assert score(SubmissionGrid()) == 0
    assert score(SubmissionGrid(), []) == 0


def test_attendance_contributes_when_enabled() -> None:
    attendance = [day(AttendanceStatus.PRESENT), day(AttendanceStatus.LATE), day(AttendanceStatus.ABSENT), day(AttendanceStatus.UNKNOWN)]
    # (10 + 8 + 0) / 30
    assert score(SubmissionGrid(), attendance) == 6000
    assert score(SubmissionGrid(), attendance, ScoringPolicy(include_attendance=False)) == 0
    assert score(grid(matched(PrState.COMPLETE)), [day(AttendanceStatus.WRONG_DAY)]) == 10000


def test_policy_overrides_credits() -> None:
    policy = ScoringPolicy(reviewed_credit=0.75)
    assert score(grid(matched(PrState.REVIEWED)), policy=policy) == 7500


@pytest.mark.parametrize("state", [PrState.UNKNOWN, PrState.NEEDS_REVIEW, PrState.REVIEWED])
def test_completing_a_pr_never_lowers_the_score(state) -> None:
    before = score(grid(matched(state), missing(), not_due()))
    after = score(grid(matched(PrState.COMPLETE), missing(), not_due()))
    assert after >= before


def test_submitting_missing_work_never_lowers_the_score() -> None:
    before = score(grid(matched(PrState.REVIEWED), missing()))
    after = score(grid(matched(PrState.REVIEWED), matched(PrState.UNKNOWN)))
    assert after >= before


def test_unhandled_slot_raises() -> None:
    broken = AssignmentSlot.model_construct(title="x", optionality=AssignmentOptionality.MANDATORY, weight=10, slot="matched")
    with pytest.raises(TypeError):
        submission_terms(broken, ScoringPolicy())


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (10000, TraineeStatus.ON_TRACK),
        (5000, TraineeStatus.ON_TRACK),
        (4999, TraineeStatus.BEHIND),
        (2500, TraineeStatus.BEHIND),
        (2499, TraineeStatus.AT_RISK),
        (0, TraineeStatus.AT_RISK),
    ],
)
def test_trainee_status_thresholds(value, expected) -> None:
    assert trainee_status(value) is expected


def test_thresholds_must_be_ordered() -> None:
    assert trainee_status(7000, StatusThresholds(on_track_at=8000, at_risk_below=6000)) is TraineeStatus.BEHIND
    with pytest.raises(ValueError):
        StatusThresholds(on_track_at=2000, at_risk_below=3000)
