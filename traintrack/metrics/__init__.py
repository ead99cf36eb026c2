"""Scores and status buckets derived from reconciled grids and review events."""

from .progress import TraineeStatus, score, trainee_status
from .reviewers import ReviewerActivity, ReviewerStatus, aggregate_reviewer, aggregate_reviewers, reviewer_status

__all__ = [
    "ReviewerActivity",
    "ReviewerStatus",
    "TraineeStatus",
    "aggregate_reviewer",
    "aggregate_reviewers",
    "reviewer_status",
    "score",
    "trainee_status",
]
