"""Per-run report: everything a renderer needs, and nothing it has to recompute."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from traintrack.metrics.progress import TraineeStatus
from traintrack.metrics.reviewers import ReviewerActivity
from traintrack.model.events import UnmatchedEvent
from traintrack.model.roster import normalize_login
from traintrack.model.slots import SubmissionGrid, TraineeAttendance


class TraineeReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    github_login: str
    name: str
    region: str
    grid: SubmissionGrid
    attendance: TraineeAttendance = Field(default_factory=TraineeAttendance)
    attended: int = 0
    counted: int = 0
    score: int = Field(..., ge=0, le=10000)
    status: TraineeStatus

    @property
    def attendance_label(self) -> str:
        return f"{self.attended}/{self.counted}"


class BatchReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch: str
    course: str
    generated_at: datetime
    trainees: Tuple[TraineeReport, ...] = ()
    reviewers: Tuple[ReviewerActivity, ...] = ()
    unmatched: Tuple[UnmatchedEvent, ...] = ()

    def trainee(self, login: str) -> Optional[TraineeReport]:
        key = normalize_login(login)
        for report in self.trainees:
            if normalize_login(report.github_login) == key:
                return report
        return None


__all__ = ["BatchReport", "TraineeReport"]
