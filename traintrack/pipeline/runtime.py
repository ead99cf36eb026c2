"""Run one batch end to end: parse, reconcile, score, report."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from traintrack.core.config import TrackerConfig
from traintrack.core.provenance import ProvenanceEvent, ProvenanceLogger
from traintrack.core.validation import ensure_valid_roster
from traintrack.metrics.progress import score, trainee_status
from traintrack.metrics.reviewers import aggregate_reviewers
from traintrack.model.events import EventKind, ParsedEvents, PrEvent, UnmatchedEvent, parse_events
from traintrack.model.slots import ModuleSlots
from traintrack.reconcile.attendance import attendance_fraction, reconcile_attendance
from traintrack.reconcile.submissions import reconcile_submissions
from traintrack.reconcile.unmatched import UnmatchedCollector
from traintrack.report.models import BatchReport, TraineeReport
from traintrack.utils.dates import as_utc

LOGGER = logging.getLogger(__name__)


def _log(provenance: Optional[ProvenanceLogger], stage: str, message: str, batch: str, **payload: Any) -> None:
    if provenance is not None:
        provenance.log(ProvenanceEvent(stage=stage, message=message, batch=batch, payload=payload))


def run_batch(
    config: TrackerConfig,
    events: Mapping[str, Any] | ParsedEvents,
    now: datetime,
    *,
    workers: int = 1,
    provenance: Optional[ProvenanceLogger] = None,
) -> BatchReport:
    """Reconcile ``events`` against the configured batch as of ``now``.

    ``events`` is either a raw event dump (``{"prs": [...], "reviews": [...],
    "attendance": [...]}``) or already-parsed events. Raises
    ``ConfigurationError`` before touching any event when the roster is
    structurally inconsistent.
    """
    now = as_utc(now)
    roster = ensure_valid_roster(config.roster)
    batch = roster.batch
    collector = UnmatchedCollector()
    parsed = events if isinstance(events, ParsedEvents) else parse_events(events, collector)

    grids = reconcile_submissions(parsed.prs, batch, now, collector, workers=workers)
    pr_authors = {pr.url: pr.author_key for pr in parsed.prs}
    reviewers = aggregate_reviewers(
        parsed.reviews,
        roster,
        now,
        collector,
        pr_authors=pr_authors,
        policy=config.reviewer_activity,
        workers=workers,
    )
    attendance = reconcile_attendance(parsed.attendance, batch, now, collector, policy=config.attendance, workers=workers)
    _log(
        provenance,
        "reconcile",
        "Events reconciled",
        batch.name,
        prs=len(parsed.prs),
        reviews=len(parsed.reviews),
        attendance=len(parsed.attendance),
        unmatched=len(collector),
    )

    trainees = []
    for trainee in batch.trainees:
        record = attendance[trainee.key]
        value = score(grids[trainee.key], record.slots, config.scoring)
        attended, counted = attendance_fraction(record.slots)
        trainees.append(
            TraineeReport(
                github_login=trainee.github_login,
                name=trainee.name,
                region=trainee.region,
                grid=grids[trainee.key],
                attendance=record,
                attended=attended,
                counted=counted,
                score=value,
                status=trainee_status(value, config.thresholds),
            )
        )
    _log(
        provenance,
        "score",
        "Trainees scored",
        batch.name,
        scores={report.github_login: report.score for report in trainees},
    )

    report = BatchReport(
        batch=batch.name,
        course=batch.course.name,
        generated_at=now,
        trainees=tuple(trainees),
        reviewers=tuple(reviewers),
        unmatched=collector.events(),
    )
    LOGGER.info(
        "Batch %s: %d trainees, %d reviewers, %d unmatched events",
        batch.name,
        len(report.trainees),
        len(report.reviewers),
        len(report.unmatched),
    )
    _log(provenance, "report", "Report assembled", batch.name, unmatched=len(report.unmatched))
    return report


@dataclass
class PrPlacement:
    """Where one PR ended up: its author's slots for the PR's module, or why it was left out.

    ``pr`` is None when the only record for the URL failed validation; the
    unmatched event then carries the raw fields.
    """

    pr: Optional[PrEvent]
    module: Optional[ModuleSlots]
    unmatched: Optional[UnmatchedEvent]

    @property
    def matched(self) -> bool:
        return self.unmatched is None and self.module is not None

    @property
    def author(self) -> Optional[str]:
        if self.pr is not None:
            return self.pr.login
        return self.unmatched.raw.get("login") if self.unmatched else None

    @property
    def title(self) -> Optional[str]:
        if self.pr is not None:
            return self.pr.title
        return self.unmatched.raw.get("title") if self.unmatched else None


def locate_pr(config: TrackerConfig, events: Mapping[str, Any], url: str, now: datetime) -> PrPlacement:
    """Run the batch and explain how the PR at ``url`` was placed.

    Raises ``KeyError`` when no record in ``events``, well-formed or not, has that URL.
    """
    report = run_batch(config, events, now)
    unmatched = next(
        (event for event in report.unmatched if event.kind is EventKind.PR and event.identity == url),
        None,
    )
    candidates = [pr for pr in parse_events(events, UnmatchedCollector()).prs if pr.url == url]
    if not candidates:
        if unmatched is None:
            raise KeyError(url)
        return PrPlacement(pr=None, module=None, unmatched=unmatched)
    pr = max(candidates, key=lambda item: item.updated_at)

    module = None
    trainee_report = report.trainee(pr.login)
    if trainee_report is not None:
        for entry in config.batch.course.entries():
            if entry.assignment.repository.lower() == pr.repo_name.lower():
                module = trainee_report.grid.module(entry.module.name)
                break
    return PrPlacement(pr=pr, module=module, unmatched=unmatched)


__all__ = ["PrPlacement", "locate_pr", "run_batch"]
