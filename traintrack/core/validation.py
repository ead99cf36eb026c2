"""Structural checks for a curriculum/roster pair, run before any reconciliation."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from traintrack.core.errors import ConfigurationError
from traintrack.model.roster import Roster

LOGGER = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check."""

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    data: Any = None

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def raise_if_invalid(self) -> None:
        """Raise ConfigurationError listing every problem if validation failed."""
        if not self.valid:
            raise ConfigurationError(self.errors)


def _duplicates(values: List[str]) -> List[str]:
    return sorted(value for value, count in Counter(values).items() if count > 1)


def validate_roster(roster: Roster) -> ValidationResult:
    """Collect every structural problem instead of stopping at the first one."""
    errors: List[str] = []
    warnings: List[str] = []
    batch = roster.batch
    course = batch.course

    if batch.end_date < batch.start_date:
        errors.append(f"Batch {batch.name} ends ({batch.end_date}) before it starts ({batch.start_date})")

    for name, region in batch.regions.items():
        try:
            ZoneInfo(region.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Region {name} uses unknown timezone {region.timezone!r}")

    for login in _duplicates([trainee.key for trainee in batch.trainees]):
        errors.append(f"Duplicate trainee login: {login}")
    for login in _duplicates([reviewer.key for reviewer in roster.reviewers]):
        errors.append(f"Duplicate reviewer login: {login}")
    for trainee in batch.trainees:
        if trainee.region not in batch.regions:
            errors.append(f"Trainee {trainee.github_login} is in undeclared region {trainee.region!r}")

    for name in _duplicates([module.name for module in course.modules]):
        errors.append(f"Duplicate module name: {name}")
    for module in course.modules:
        numbers = [sprint.number for sprint in module.sprints]
        if numbers != list(range(1, len(numbers) + 1)):
            errors.append(f"Module {module.name} sprints must be numbered 1..{len(numbers)} in order, got {numbers}")
        for sprint in module.sprints:
            for region in sorted(set(sprint.dates) - set(batch.regions)):
                errors.append(f"Module {module.name} sprint {sprint.number} has a date for undeclared region {region!r}")
            for assignment in sprint.assignments:
                if not assignment.repository.strip():
                    errors.append(f"Assignment {assignment.title!r} in {module.name} sprint {sprint.number} has no repository")

    outside = [day for day in batch.scheduled_days if not batch.in_range(day)]
    if outside:
        errors.append(f"Scheduled days outside {batch.start_date}..{batch.end_date}: {', '.join(day.isoformat() for day in outside)}")

    if course.assignment_count() == 0:
        warnings.append(f"Course {course.name} has no assignments")
    if not batch.scheduled_days:
        warnings.append(f"Batch {batch.name} has no scheduled class days")
    if not roster.reviewers:
        warnings.append("No reviewers configured")

    result = ValidationResult(valid=not errors, errors=errors, warnings=warnings, data=roster if not errors else None)
    if not result.valid:
        LOGGER.error("Roster validation failed: %s", result.errors)
    elif result.has_warnings:
        LOGGER.warning("Roster validation warnings: %s", result.warnings)
    return result


def ensure_valid_roster(roster: Roster) -> Roster:
    """Return ``roster`` unchanged or raise one ConfigurationError naming every problem."""
    validate_roster(roster).raise_if_invalid()
    return roster


__all__ = ["ValidationResult", "ensure_valid_roster", "validate_roster"]
