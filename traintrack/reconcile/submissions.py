"""
Submission reconciler: bind each trainee's pull requests to curriculum slots.

Matching runs per trainee and only reads shared, frozen inputs, so trainees can
be reconciled on a thread pool. Every PR ends up either claimed by exactly one
slot or in the unmatched collector with a reason.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from traintrack.model.curriculum import Assignment, Course, CourseEntry
from traintrack.model.events import EventKind, PrEvent, UnmatchedReason, unmatched_from
from traintrack.model.roster import Batch, Trainee
from traintrack.model.slots import (
    AssignmentSlot,
    Matched,
    MissingButExpected,
    MissingButNotExpected,
    ModuleSlots,
    PrState,
    SprintSlots,
    Submission,
    SubmissionGrid,
    SubmissionSlot,
)
from traintrack.reconcile.fanout import map_in_order
from traintrack.reconcile.unmatched import UnmatchedCollector
from traintrack.utils.dates import as_utc
from traintrack.utils.titles import matchable_title_words, title_word_set

LOGGER = logging.getLogger(__name__)

MAX_CLAIMED_SPRINT = 20
COMPLETE_LABEL = "complete"
REVIEWED_DECISIONS = frozenset({"APPROVED", "CHANGES_REQUESTED"})
KNOWN_DECISIONS = REVIEWED_DECISIONS | {"COMMENTED", "DISMISSED", "PENDING"}

_NUMBER = re.compile(r"(\d+)")


def classify_pr(pr: PrEvent) -> PrState:
    """State of a matched PR; anything contradictory or unrecognised is ``unknown``."""
    labels = {label.strip().lower() for label in pr.labels}
    if pr.is_merged:
        # Merged but still reported open is contradictory.
        return PrState.UNKNOWN if pr.is_closed is False else PrState.COMPLETE
    if COMPLETE_LABEL in labels:
        return PrState.COMPLETE
    if pr.closed:
        return PrState.UNKNOWN
    decisions = {decision.strip().upper() for decision in pr.review_decisions}
    if decisions - KNOWN_DECISIONS:
        return PrState.UNKNOWN
    if decisions & REVIEWED_DECISIONS:
        return PrState.REVIEWED
    return PrState.NEEDS_REVIEW


def claimed_sprint(title: str) -> Optional[int]:
    """Sprint number a PR title claims via a ``Sprint N`` / ``Week N`` part, if any.

    Titles are conventionally ``Region | Name | Sprint 2 | Assignment``. Numbers
    outside 1..20 are not plausible sprint numbers and are ignored.
    """
    claim = None
    for part in title.lower().split("|"):
        part = part.strip()
        if not (part.startswith("sprint") or part.startswith("week")):
            continue
        found = _NUMBER.search(part)
        if found is None:
            continue
        number = int(found.group(1))
        if 1 <= number <= MAX_CLAIMED_SPRINT:
            claim = number
        else:
            LOGGER.debug("Ignoring implausible sprint number %s in PR title %r", number, title)
    return claim


def match_strength(pr: PrEvent, entry: CourseEntry, claim: Optional[int] = None) -> int:
    """How well ``pr`` fits the assignment at ``entry``; 0 means not a candidate."""
    assignment = entry.assignment
    if assignment.repository.lower() != pr.repo_name.lower():
        return 0
    if claim is not None and entry.sprint.number != claim:
        return 0
    if assignment.title_pattern is not None:
        return 1 if assignment.pattern_matches(pr.title, pr.head_branch) else 0
    pr_words = title_word_set(pr.title)
    assignment_words = matchable_title_words(assignment.title)
    if claim is not None:
        pr_words.add(f"sprint{claim}")
        if "sprint" in assignment_words:
            assignment_words.update({f"sprint{claim}", f"week{claim}"})
    return len(pr_words & assignment_words)


@dataclass(frozen=True)
class _Candidate:
    pr: PrEvent
    strength: int
    entries: Tuple[int, ...]
    strengths: Tuple[int, ...]

    def rank(self) -> Tuple[int, int, float, str]:
        # Strongest first, then open PRs, then most recently updated.
        return (-self.strength, 0 if self.pr.is_open else 1, -self.pr.updated_at.timestamp(), self.pr.url)


def _candidates(prs: Sequence[PrEvent], entries: Sequence[CourseEntry]) -> List[_Candidate]:
    candidates = []
    for pr in prs:
        claim = claimed_sprint(pr.title)
        strengths = tuple(match_strength(pr, entry, claim) for entry in entries)
        best = max(strengths, default=0)
        eligible = tuple(index for index, strength in enumerate(strengths) if best > 0 and strength == best)
        candidates.append(_Candidate(pr=pr, strength=best, entries=eligible, strengths=strengths))
    return candidates


def _open_slots(candidate: _Candidate, chosen: Dict[int, _Candidate]) -> List[int]:
    """Empty slots ``candidate`` still matches, best match first."""
    indexes = [index for index, strength in enumerate(candidate.strengths) if strength > 0 and index not in chosen]
    return sorted(indexes, key=lambda index: (-candidate.strengths[index], index))


def _fill_remaining(candidates: Sequence[_Candidate], chosen: Dict[int, _Candidate], taken: set[str]) -> None:
    """Place PRs that lost their best slot into other slots they match.

    A losing PR takes the best empty slot it matches. Failing that it may take a
    filled slot whose holder can move to another empty slot the holder matches.
    """
    placed = True
    while placed:
        placed = False
        losers = sorted((c for c in candidates if c.strength > 0 and c.pr.url not in taken), key=_Candidate.rank)
        for loser in losers:
            direct = _open_slots(loser, chosen)
            if direct:
                chosen[direct[0]] = loser
                taken.add(loser.pr.url)
                placed = True
                break
            wanted = sorted(
                (index for index in chosen if loser.strengths[index] > 0),
                key=lambda index: (-loser.strengths[index], index),
            )
            for index in wanted:
                holder = chosen[index]
                moves = _open_slots(holder, chosen)
                if moves:
                    chosen[moves[0]] = holder
                    chosen[index] = loser
                    taken.add(loser.pr.url)
                    placed = True
                    break
            if placed:
                break


def to_submission(pr: PrEvent) -> Submission:
    return Submission(
        url=pr.url,
        number=pr.number,
        repo_name=pr.repo_name,
        title=pr.title,
        display_text=f"#{pr.number}",
        state=classify_pr(pr),
        updated_at=pr.updated_at,
    )


def reconcile_trainee_submissions(
    trainee: Trainee,
    prs: Sequence[PrEvent],
    batch: Batch,
    now: datetime,
    collector: UnmatchedCollector,
) -> SubmissionGrid:
    """Build one trainee's grid from PRs already known to be theirs."""
    now = as_utc(now)
    entries = list(batch.course.entries())
    candidates = _candidates(prs, entries)
    chosen: Dict[int, _Candidate] = {}
    taken: set[str] = set()
    for index in range(len(entries)):
        eligible = [c for c in candidates if index in c.entries and c.pr.url not in taken]
        if not eligible:
            continue
        winner = min(eligible, key=_Candidate.rank)
        chosen[index] = winner
        taken.add(winner.pr.url)
    _fill_remaining(candidates, chosen, taken)

    for candidate in candidates:
        if candidate.pr.url in taken:
            collector.claim(EventKind.PR, candidate.pr.identity)
        elif candidate.entries:
            collector.add(unmatched_from(candidate.pr, UnmatchedReason.SUPERSEDED, detail="a better or newer PR filled the slot"))
        else:
            collector.add(unmatched_from(candidate.pr, UnmatchedReason.NO_MATCHING_ASSIGNMENT))

    region = batch.region_for(trainee)
    grid = _build_grid(batch, chosen, region_name=trainee.region, tz=region.tz, now=now)
    LOGGER.debug("Reconciled %s: %d PRs, %d slots filled", trainee.github_login, len(prs), len(chosen))
    return grid


def _build_grid(
    batch: Batch, chosen: Dict[int, _Candidate], *, region_name: str, tz: tzinfo, now: datetime
) -> SubmissionGrid:
    course: Course = batch.course
    modules = []
    position = 0
    for module in course.modules:
        sprints = []
        for sprint in module.sprints:
            slots = []
            for assignment in sprint.assignments:
                candidate = chosen.get(position)
                if candidate is not None:
                    slot = Matched(submission=to_submission(candidate.pr))
                else:
                    due_at = sprint.due_at(assignment, start_date=batch.start_date, region=region_name, tz=tz)
                    slot = MissingButExpected(due_at=due_at) if now > due_at else MissingButNotExpected(due_at=due_at)
                slots.append(_assignment_slot(assignment, slot))
                position += 1
            sprints.append(SprintSlots(number=sprint.number, slots=tuple(slots)))
        modules.append(ModuleSlots(name=module.name, sprints=tuple(sprints)))
    return SubmissionGrid(modules=tuple(modules))


def _assignment_slot(assignment: Assignment, slot: SubmissionSlot) -> AssignmentSlot:
    return AssignmentSlot(title=assignment.title, optionality=assignment.optionality, weight=assignment.weight, slot=slot)


def partition_prs(prs: Iterable[PrEvent], batch: Batch, collector: UnmatchedCollector) -> Dict[str, List[PrEvent]]:
    """Group PRs by trainee, rejecting foreign authors, foreign repositories and stale duplicates.

    Runs in input order on the calling thread so rejections land in the
    collector deterministically.
    """
    prs = list(prs)
    latest: Dict[str, PrEvent] = {}
    for pr in prs:
        current = latest.get(pr.url)
        if current is None or (pr.updated_at, pr.is_merged) > (current.updated_at, current.is_merged):
            latest[pr.url] = pr

    repositories = {repository.lower() for repository in batch.course.repositories()}
    known = set(batch.trainee_keys())
    grouped: Dict[str, List[PrEvent]] = {key: [] for key in known}
    for pr in prs:
        # Staleness is settled first: an older copy may carry a login or
        # repository the latest copy no longer has.
        if latest[pr.url] is not pr:
            if latest[pr.url] != pr:
                LOGGER.warning("Dropping stale copy of %s updated at %s", pr.url, pr.updated_at.isoformat())
                collector.add(
                    unmatched_from(
                        pr,
                        UnmatchedReason.DUPLICATE,
                        detail="a more recently updated copy of this PR was received",
                        identity=f"{pr.url}@{pr.updated_at.isoformat()}",
                    )
                )
            continue
        if pr.author_key not in known:
            collector.add(unmatched_from(pr, UnmatchedReason.UNKNOWN_AUTHOR, detail=f"{pr.login} is not a trainee of {batch.name}"))
            continue
        if pr.repo_name.lower() not in repositories:
            collector.add(unmatched_from(pr, UnmatchedReason.UNKNOWN_REPOSITORY, detail=f"{pr.repo_name} is not part of {batch.course.name}"))
            continue
        grouped[pr.author_key].append(pr)
    return grouped


def reconcile_submissions(
    prs: Iterable[PrEvent],
    batch: Batch,
    now: datetime,
    collector: UnmatchedCollector,
    *,
    workers: int = 1,
) -> Dict[str, SubmissionGrid]:
    """Return ``{trainee login key -> grid}`` in roster order.

    Each trainee is reconciled against its own collector; those are merged
    into ``collector`` in roster order so the unmatched list does not depend on
    ``workers``.
    """
    grouped = partition_prs(prs, batch, collector)

    def _one(trainee: Trainee) -> Tuple[SubmissionGrid, UnmatchedCollector]:
        local = UnmatchedCollector()
        grid = reconcile_trainee_submissions(trainee, grouped[trainee.key], batch, now, local)
        return grid, local

    results = map_in_order(_one, list(batch.trainees), workers=workers)
    grids: Dict[str, SubmissionGrid] = {}
    for trainee, (grid, local) in zip(batch.trainees, results):
        collector.merge(local)
        grids[trainee.key] = grid
    return grids


__all__ = [
    "classify_pr",
    "claimed_sprint",
    "match_strength",
    "partition_prs",
    "reconcile_submissions",
    "reconcile_trainee_submissions",
    "to_submission",
]
