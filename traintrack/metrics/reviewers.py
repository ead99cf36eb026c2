"""Reviewer activity: review counts, recency and a status bucket per reviewer."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from traintrack.core.config import ReviewerActivityPolicy
from traintrack.model.events import EventKind, ReviewEvent, UnmatchedReason, unmatched_from
from traintrack.model.roster import Reviewer, Roster
from traintrack.reconcile.fanout import map_in_order
from traintrack.reconcile.unmatched import UnmatchedCollector
from traintrack.utils.dates import as_utc, whole_days_between

LOGGER = logging.getLogger(__name__)


class ReviewerStatus(str, Enum):
    SUPER_ACTIVE = "super-active"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ReviewedPr(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    repo_name: str
    number: int
    latest_review_at: datetime


class ReviewerActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    login: str
    total_reviews: int = 0
    last_review_at: Optional[datetime] = None
    days_since_last_review: Optional[int] = None
    review_days_last_28: int = 0
    reviewed_prs: Tuple[ReviewedPr, ...] = ()
    status: ReviewerStatus = ReviewerStatus.INACTIVE


def reviewer_status(
    days_since_last_review: Optional[int],
    total_reviews: int,
    policy: Optional[ReviewerActivityPolicy] = None,
) -> ReviewerStatus:
    """Bucket a reviewer; rules apply in order and the policy keeps them disjoint."""
    policy = policy or ReviewerActivityPolicy()
    if days_since_last_review is None or total_reviews == 0:
        return ReviewerStatus.INACTIVE
    if days_since_last_review < policy.super_active_max_days and total_reviews > policy.super_active_min_reviews:
        return ReviewerStatus.SUPER_ACTIVE
    if days_since_last_review > policy.inactive_after_days:
        return ReviewerStatus.INACTIVE
    return ReviewerStatus.ACTIVE


def aggregate_reviewer(
    login: str,
    reviews: Sequence[ReviewEvent],
    now: datetime,
    policy: Optional[ReviewerActivityPolicy] = None,
) -> ReviewerActivity:
    """Metrics for one reviewer from reviews already attributed to them."""
    policy = policy or ReviewerActivityPolicy()
    now = as_utc(now)
    if not reviews:
        return ReviewerActivity(login=login, status=reviewer_status(None, 0, policy))

    last_review_at = max(review.reviewed_at for review in reviews)
    # A review stamped after ``now`` counts as zero days ago.
    days_since = max(0, whole_days_between(last_review_at, now))
    window_start = now - timedelta(days=policy.window_days)
    recent_days = {review.reviewed_at.date() for review in reviews if window_start <= review.reviewed_at <= now}

    latest: Dict[str, ReviewEvent] = {}
    for review in reviews:
        current = latest.get(review.pr.url)
        if current is None or review.reviewed_at > current.reviewed_at:
            latest[review.pr.url] = review
    reviewed_prs = sorted(
        (
            ReviewedPr(url=review.pr.url, repo_name=review.pr.repo_name, number=review.pr.number, latest_review_at=review.reviewed_at)
            for review in latest.values()
        ),
        key=lambda pr: (pr.latest_review_at, pr.url),
        reverse=True,
    )
    return ReviewerActivity(
        login=login,
        total_reviews=len(reviews),
        last_review_at=last_review_at,
        days_since_last_review=days_since,
        review_days_last_28=len(recent_days),
        reviewed_prs=tuple(reviewed_prs),
        status=reviewer_status(days_since, len(reviews), policy),
    )


def partition_reviews(
    reviews: Iterable[ReviewEvent],
    roster: Roster,
    pr_authors: Mapping[str, str],
    collector: UnmatchedCollector,
) -> Dict[str, List[ReviewEvent]]:
    """Group reviews by configured reviewer.

    ``pr_authors`` maps PR URL to the normalised author login, as seen in the
    PR events of the same run; a review by the PR's own author is not counted.
    """
    grouped: Dict[str, List[ReviewEvent]] = {reviewer.key: [] for reviewer in roster.reviewers}
    copies: Dict[str, int] = {}
    for review in reviews:
        if review.reviewer_key not in grouped:
            collector.add(unmatched_from(review, UnmatchedReason.UNKNOWN_REVIEWER, detail=f"{review.reviewer_login} is not a configured reviewer"))
            continue
        if pr_authors.get(review.pr.url) == review.reviewer_key:
            collector.add(unmatched_from(review, UnmatchedReason.SELF_REVIEW, detail=f"{review.reviewer_login} authored {review.pr.url}"))
            continue
        copies[review.identity] = copies.get(review.identity, 0) + 1
        if copies[review.identity] > 1:
            LOGGER.warning("Duplicate review %s", review.identity)
            collector.add(
                unmatched_from(
                    review,
                    UnmatchedReason.DUPLICATE,
                    detail="same reviewer, PR and time as an earlier review",
                    identity=f"{review.identity}#{copies[review.identity]}",
                )
            )
            continue
        grouped[review.reviewer_key].append(review)
    return grouped


def _activity_order(activity: ReviewerActivity) -> Tuple[int, float, int, str]:
    # Most recent review first, then most PRs reviewed, then login.
    last = activity.last_review_at
    return (0 if last else 1, -last.timestamp() if last else 0.0, -len(activity.reviewed_prs), activity.login.lower())


def sort_reviewers(activities: Iterable[ReviewerActivity]) -> List[ReviewerActivity]:
    return sorted(activities, key=_activity_order)


def aggregate_reviewers(
    reviews: Iterable[ReviewEvent],
    roster: Roster,
    now: datetime,
    collector: UnmatchedCollector,
    *,
    pr_authors: Optional[Mapping[str, str]] = None,
    policy: Optional[ReviewerActivityPolicy] = None,
    workers: int = 1,
) -> List[ReviewerActivity]:
    """Activity for every configured reviewer, most recently active first."""
    policy = policy or ReviewerActivityPolicy()
    grouped = partition_reviews(reviews, roster, pr_authors or {}, collector)
    for review_list in grouped.values():
        for review in review_list:
            collector.claim(EventKind.REVIEW, review.identity)

    def _one(reviewer: Reviewer) -> ReviewerActivity:
        return aggregate_reviewer(reviewer.login, grouped[reviewer.key], now, policy)

    activities = map_in_order(_one, list(roster.reviewers), workers=workers)
    LOGGER.debug("Aggregated %d reviewers", len(activities))
    return sort_reviewers(activities)


__all__ = [
    "ReviewedPr",
    "ReviewerActivity",
    "ReviewerStatus",
    "aggregate_reviewer",
    "aggregate_reviewers",
    "partition_reviews",
    "reviewer_status",
    "sort_reviewers",
]
