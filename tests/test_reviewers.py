from __future__ import annotations

from datetime import timedelta

import pytest

from tests.factories import NOW, make_config, review, reviews_spread
from traintrack.core.config import ReviewerActivityPolicy
from traintrack.metrics.reviewers import (
    ReviewerStatus,
    aggregate_reviewer,
    aggregate_reviewers,
    reviewer_status,
)
from traintrack.model.events import EventKind, UnmatchedReason
from traintrack.reconcile.unmatched import UnmatchedCollector


@pytest.fixture
def roster():
    return make_config().roster


def _by_login(activities):
    return {activity.login: activity for activity in activities}


@pytest.mark.parametrize(
    ("days", "total", "expected"),
    [
        (None, 0, ReviewerStatus.INACTIVE),
        (13, 11, ReviewerStatus.SUPER_ACTIVE),
        (14, 11, ReviewerStatus.ACTIVE),
        (5, 10, ReviewerStatus.ACTIVE),
        (28, 1, ReviewerStatus.ACTIVE),
        (29, 1, ReviewerStatus.INACTIVE),
        (0, 1, ReviewerStatus.ACTIVE),
    ],
)
def test_reviewer_status_buckets(days, total, expected) -> None:
    assert reviewer_status(days, total) is expected


def test_overlapping_thresholds_are_rejected() -> None:
    with pytest.raises(ValueError, match="overlap"):
        ReviewerActivityPolicy(super_active_max_days=40, inactive_after_days=28)
    assert ReviewerActivityPolicy(super_active_max_days=29, inactive_after_days=28).super_active_max_days == 29


def test_activity_buckets_for_a_batch(roster) -> None:
    reviews = (
        reviews_spread("erin", 12, NOW - timedelta(days=5))
        + reviews_spread("frank", 2, NOW - timedelta(days=40), first_number=200)
        + reviews_spread("bob", 3, NOW - timedelta(days=2), first_number=300)
    )
    collector = UnmatchedCollector()
    activities = aggregate_reviewers(reviews, roster, NOW, collector)

    assert [activity.login for activity in activities] == ["bob", "erin", "frank"]
    by_login = _by_login(activities)
    erin = by_login["erin"]
    assert erin.status is ReviewerStatus.SUPER_ACTIVE
    assert erin.total_reviews == 12
    assert erin.days_since_last_review == 5
    assert erin.review_days_last_28 == 12
    assert by_login["frank"].status is ReviewerStatus.INACTIVE
    assert by_login["frank"].review_days_last_28 == 0
    assert by_login["bob"].status is ReviewerStatus.ACTIVE
    assert collector.events() == ()
    assert all(collector.is_claimed(EventKind.REVIEW, item.identity) for item in reviews)


def test_reviewer_without_reviews_is_inactive_and_listed_last(roster) -> None:
    activities = aggregate_reviewers([review("frank", 1, NOW - timedelta(days=1))], roster, NOW, UnmatchedCollector())
    assert activities[0].login == "frank"
    idle = _by_login(activities)["bob"]
    assert idle.status is ReviewerStatus.INACTIVE
    assert idle.total_reviews == 0
    assert idle.last_review_at is None
    assert idle.days_since_last_review is None


def test_reviewed_prs_are_distinct_and_newest_first() -> None:
    reviews = [
        review("bob", 1, NOW - timedelta(days=9)),
        review("bob", 2, NOW - timedelta(days=4)),
        review("bob", 1, NOW - timedelta(days=1, hours=2)),
        review("bob", 1, NOW - timedelta(days=1, hours=1)),
    ]
    activity = aggregate_reviewer("bob", reviews, NOW)
    assert activity.total_reviews == 4
    assert [pr.number for pr in activity.reviewed_prs] == [1, 2]
    assert activity.reviewed_prs[0].latest_review_at == NOW - timedelta(days=1, hours=1)
    # the two reviews a day ago share a calendar date
    assert activity.review_days_last_28 == 3


def test_review_after_now_counts_as_today() -> None:
    activity = aggregate_reviewer("bob", [review("bob", 1, NOW + timedelta(hours=2))], NOW)
    assert activity.days_since_last_review == 0
    assert activity.review_days_last_28 == 0
    assert activity.status is ReviewerStatus.ACTIVE


def test_unattributable_reviews_are_collected(roster) -> None:
    own = review("bob", 7, NOW - timedelta(days=1))
    stranger = review("mallory", 8, NOW - timedelta(days=1))
    counted = review("erin", 9, NOW - timedelta(days=2))
    collector = UnmatchedCollector()
    activities = aggregate_reviewers(
        [own, stranger, counted, counted],
        roster,
        NOW,
        collector,
        pr_authors={own.pr.url: "bob", counted.pr.url: "alice"},
    )
    assert [(event.identity, event.reason) for event in collector.events()] == [
        (own.identity, UnmatchedReason.SELF_REVIEW),
        (stranger.identity, UnmatchedReason.UNKNOWN_REVIEWER),
        (f"{counted.identity}#2", UnmatchedReason.DUPLICATE),
    ]
    assert _by_login(activities)["erin"].total_reviews == 1
    assert _by_login(activities)["bob"].total_reviews == 0


def test_ties_break_on_pr_count_then_login(roster) -> None:
    when = NOW - timedelta(days=3)
    reviews = [
        review("frank", 1, when),
        review("erin", 2, when),
        review("bob", 3, when),
        review("bob", 4, when - timedelta(days=1)),
    ]
    activities = aggregate_reviewers(reviews, roster, NOW, UnmatchedCollector())
    assert [activity.login for activity in activities] == ["bob", "erin", "frank"]


def test_workers_do_not_change_the_result(roster) -> None:
    reviews = reviews_spread("erin", 15, NOW - timedelta(days=1)) + reviews_spread("bob", 4, NOW - timedelta(days=20), first_number=400)
    assert aggregate_reviewers(reviews, roster, NOW, UnmatchedCollector()) == aggregate_reviewers(
        reviews, roster, NOW, UnmatchedCollector(), workers=3
    )
