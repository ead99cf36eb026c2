"""
Curriculum model: a course is an ordered list of modules, each an ordered list
of sprints, each an ordered list of expected pull-request assignments.

The ordering here is the column order of every trainee's submission grid, so
these models are frozen and shared by reference across a run.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Dict, Iterator, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from traintrack.utils.dates import local_midnight


class AssignmentOptionality(str, Enum):
    """Whether an assignment counts against a trainee when it is missing."""

    MANDATORY = "mandatory"
    STRETCH = "stretch"


class Assignment(BaseModel):
    """A pull request each trainee is expected to open."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    repository: str = Field(..., description="Repository the PR is expected to be opened against.")
    title_pattern: Optional[str] = Field(
        default=None,
        description="Case-insensitive regex; when set, only PRs whose title or branch match it are candidates.",
    )
    optionality: AssignmentOptionality = AssignmentOptionality.MANDATORY
    weight: int = Field(default=10, ge=1)
    offset_days: Optional[int] = Field(default=None, ge=0)
    html_url: Optional[str] = None

    @field_validator("title_pattern")
    @classmethod
    def _compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"title_pattern {value!r} is not a valid regular expression: {exc}") from exc
        return value

    @property
    def heading(self) -> str:
        return f"PR: {self.title}"

    @property
    def is_stretch(self) -> bool:
        return self.optionality is AssignmentOptionality.STRETCH

    def pattern_matches(self, *texts: Optional[str]) -> bool:
        if self.title_pattern is None:
            return False
        pattern = re.compile(self.title_pattern, re.IGNORECASE)
        return any(text and pattern.search(text) for text in texts)


class Sprint(BaseModel):
    """One sprint of a module; assignments fall due ``offset_days`` after the batch starts."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1)
    offset_days: int = Field(default=0, ge=0)
    dates: Dict[str, date] = Field(
        default_factory=dict,
        description="Optional per-region class dates; a region's date overrides offset_days for that region.",
    )
    assignments: Tuple[Assignment, ...] = ()

    def due_at(self, assignment: Assignment, *, start_date: date, region: str, tz: tzinfo) -> datetime:
        """Instant (UTC) after which a missing ``assignment`` counts as overdue."""
        if assignment.offset_days is None and region in self.dates:
            return local_midnight(self.dates[region], tz)
        offset = assignment.offset_days if assignment.offset_days is not None else self.offset_days
        return local_midnight(start_date + timedelta(days=offset), timezone.utc)


class Module(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)
    sprints: Tuple[Sprint, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _inherit_defaults(cls, data: Any) -> Any:
        """Number sprints by position and default assignment repositories to the module's."""
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        repository = payload.get("repository") or payload.get("name")
        payload.setdefault("repository", repository)
        sprints = []
        for position, sprint in enumerate(payload.get("sprints") or [], start=1):
            if isinstance(sprint, dict):
                sprint = dict(sprint)
                sprint.setdefault("number", position)
                assignments = []
                for assignment in sprint.get("assignments") or []:
                    if isinstance(assignment, dict):
                        assignment = {"repository": repository, **assignment}
                    assignments.append(assignment)
                sprint["assignments"] = assignments
            sprints.append(sprint)
        payload["sprints"] = sprints
        return payload

    def assignment_count(self) -> int:
        return sum(len(sprint.assignments) for sprint in self.sprints)


class AssignmentKey(NamedTuple):
    """Stable address of an assignment slot within a course."""

    module: str
    sprint: int
    index: int


class CourseEntry(NamedTuple):
    key: AssignmentKey
    module: Module
    sprint: Sprint
    assignment: Assignment


class Course(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    modules: Tuple[Module, ...] = ()

    def module(self, name: str) -> Module:
        for module in self.modules:
            if module.name == name:
                return module
        raise KeyError(name)

    def module_names(self) -> list[str]:
        return [module.name for module in self.modules]

    def entries(self) -> Iterator[CourseEntry]:
        """Every assignment in curriculum order."""
        for module in self.modules:
            for sprint in module.sprints:
                for index, assignment in enumerate(sprint.assignments):
                    yield CourseEntry(AssignmentKey(module.name, sprint.number, index), module, sprint, assignment)

    def slot_keys(self) -> list[AssignmentKey]:
        return [entry.key for entry in self.entries()]

    def assignment_count(self) -> int:
        return sum(module.assignment_count() for module in self.modules)

    def repositories(self) -> set[str]:
        return {entry.assignment.repository for entry in self.entries()}


__all__ = [
    "Assignment",
    "AssignmentKey",
    "AssignmentOptionality",
    "Course",
    "CourseEntry",
    "Module",
    "Sprint",
]
