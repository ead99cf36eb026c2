"""Roster model: a batch of trainees following a course, plus the reviewers."""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from traintrack.model.curriculum import Course
from traintrack.utils.dates import iter_days

DEFAULT_TIMEZONE = "Europe/London"


def normalize_login(login: str) -> str:
    """GitHub logins are case-insensitive; this is the identity form."""
    return login.strip().lower()


class Region(BaseModel):
    model_config = ConfigDict(frozen=True)

    timezone: str = DEFAULT_TIMEZONE

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {value!r}") from exc
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class Trainee(BaseModel):
    model_config = ConfigDict(frozen=True)

    github_login: str = Field(..., min_length=1)
    name: str = "unknown"
    email: str = "unknown@example.com"
    region: str

    @property
    def key(self) -> str:
        return normalize_login(self.github_login)


class Reviewer(BaseModel):
    model_config = ConfigDict(frozen=True)

    login: str = Field(..., min_length=1)

    @property
    def key(self) -> str:
        return normalize_login(self.login)


class Batch(BaseModel):
    """A cohort of trainees following one course over a fixed date range."""

    model_config = ConfigDict(frozen=True)

    name: str
    start_date: date
    end_date: date
    regions: Dict[str, Region] = Field(default_factory=dict)
    course: Course
    trainees: Tuple[Trainee, ...] = ()
    scheduled_days: Tuple[date, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _expand_schedule(cls, data: Any) -> Any:
        """Accept ``class_weekdays`` + ``holidays`` as a shorthand for ``scheduled_days``."""
        if not isinstance(data, dict) or "class_weekdays" not in data:
            return data
        payload = dict(data)
        weekdays = {int(day) for day in payload.pop("class_weekdays") or []}
        holidays = {_as_date(day) for day in payload.pop("holidays", None) or []}
        if "scheduled_days" not in payload:
            start = _as_date(payload["start_date"])
            end = _as_date(payload["end_date"])
            payload["scheduled_days"] = [
                day for day in iter_days(start, end) if day.isoweekday() in weekdays and day not in holidays
            ]
        return payload

    @field_validator("regions", mode="before")
    @classmethod
    def _coerce_regions(cls, value: Any) -> Any:
        # A bare list of region names uses the default timezone for each.
        if isinstance(value, list):
            return {str(name): {} for name in value}
        if isinstance(value, dict):
            return {name: ({"timezone": zone} if isinstance(zone, str) else zone or {}) for name, zone in value.items()}
        return value

    @field_validator("scheduled_days")
    @classmethod
    def _sorted_days(cls, value: Tuple[date, ...]) -> Tuple[date, ...]:
        return tuple(sorted(set(value)))

    def trainee(self, login: str) -> Optional[Trainee]:
        key = normalize_login(login)
        for trainee in self.trainees:
            if trainee.key == key:
                return trainee
        return None

    def trainee_keys(self) -> List[str]:
        return [trainee.key for trainee in self.trainees]

    def region_for(self, trainee: Trainee) -> Region:
        return self.regions[trainee.region]

    def in_range(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def all_regions(self) -> List[str]:
        """Regions in use, most populous first."""
        counts = Counter(trainee.region for trainee in self.trainees)
        return [region for region, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))]


class Roster(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch: Batch
    reviewers: Tuple[Reviewer, ...] = ()

    def reviewer(self, login: str) -> Optional[Reviewer]:
        key = normalize_login(login)
        for reviewer in self.reviewers:
            if reviewer.key == key:
                return reviewer
        return None


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


__all__ = ["Batch", "Region", "Reviewer", "Roster", "Trainee", "normalize_login"]
