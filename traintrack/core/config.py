"""
Typed configuration for a tracker run.

One YAML file describes the batch (dates, regions, class days), the course it
follows, its trainees and reviewers, plus the scoring and status policies.
Everything here is a frozen pydantic model so a loaded config can be shared
across worker threads.
"""

from __future__ import annotations

from datetime import time
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from traintrack.model.roster import Batch, Reviewer, Roster


def exact(value: float | int | str | Fraction) -> Fraction:
    """Decimal config values as exact fractions (0.6 -> 3/5)."""
    if isinstance(value, Fraction):
        return value
    return Fraction(str(value))


class ScoringPolicy(BaseModel):
    """Credits and weights used by the progress scorer."""

    model_config = ConfigDict(frozen=True)

    complete_credit: float = Field(default=1.0, ge=0.0, le=1.0)
    reviewed_credit: float = Field(default=0.6, ge=0.0, le=1.0)
    needs_review_credit: float = Field(default=0.6, ge=0.0, le=1.0)
    unknown_credit: float = Field(default=0.2, ge=0.0, le=1.0)
    stretch_multiplier: float = Field(default=1.2, ge=0.0, description="Weight factor for a submitted stretch assignment.")
    missing_stretch_fraction: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Share of a stretch assignment's weight that counts when it is overdue."
    )
    include_attendance: bool = True
    attendance_weight: int = Field(default=10, ge=0)
    present_credit: float = Field(default=1.0, ge=0.0, le=1.0)
    late_credit: float = Field(default=0.8, ge=0.0, le=1.0)


class StatusThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    on_track_at: int = Field(default=5000, ge=0, le=10000)
    at_risk_below: int = Field(default=2500, ge=0, le=10000)

    @model_validator(mode="after")
    def _ordered(self) -> "StatusThresholds":
        if self.at_risk_below > self.on_track_at:
            raise ValueError(f"at_risk_below ({self.at_risk_below}) must not exceed on_track_at ({self.on_track_at})")
        return self


class ReviewerActivityPolicy(BaseModel):
    """Day and count thresholds for reviewer status buckets."""

    model_config = ConfigDict(frozen=True)

    super_active_max_days: int = Field(default=14, ge=1)
    super_active_min_reviews: int = Field(default=10, ge=0)
    inactive_after_days: int = Field(default=28, ge=0)
    window_days: int = Field(default=28, ge=1)

    @model_validator(mode="after")
    def _buckets_disjoint(self) -> "ReviewerActivityPolicy":
        # super-active needs days < super_active_max_days, inactive needs days > inactive_after_days.
        if self.super_active_max_days - 1 > self.inactive_after_days:
            raise ValueError(
                "reviewer thresholds overlap: super_active_max_days "
                f"({self.super_active_max_days}) must be at most inactive_after_days + 1 ({self.inactive_after_days + 1})"
            )
        return self


class AttendancePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    class_start: time = Field(default=time(10, 0), description="Local start time of a class day.")
    late_after_minutes: int = Field(default=10, ge=0)


class TrackerConfig(BaseModel):
    """Top-level configuration for one batch."""

    model_config = ConfigDict(frozen=True)

    batch: Batch
    reviewers: Tuple[Reviewer, ...] = ()
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    thresholds: StatusThresholds = Field(default_factory=StatusThresholds)
    reviewer_activity: ReviewerActivityPolicy = Field(default_factory=ReviewerActivityPolicy)
    attendance: AttendancePolicy = Field(default_factory=AttendancePolicy)
    events_path: Optional[Path] = None

    @model_validator(mode="before")
    @classmethod
    def _nest_sections(cls, values: Any) -> Any:
        """Allow ``course`` and ``trainees`` at the top level next to ``batch``."""
        if not isinstance(values, dict):
            return values
        batch_section = values.get("batch")
        if batch_section is None:
            raise ValueError("Missing config sections: batch")
        if not isinstance(batch_section, dict):
            return values
        if "course" not in values and "course" not in batch_section:
            raise ValueError("Missing config sections: course")
        payload = dict(values)
        batch = dict(batch_section)
        for key in ("course", "trainees"):
            if key in payload:
                batch.setdefault(key, payload.pop(key))
        payload["batch"] = batch
        return payload

    @field_validator("reviewers", mode="before")
    @classmethod
    def _coerce_reviewers(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"login": item} if isinstance(item, str) else item for item in value]
        return value

    @property
    def roster(self) -> Roster:
        return Roster(batch=self.batch, reviewers=self.reviewers)


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _resolve_config_path(value: Any, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    else:
        path = path.resolve()
    return str(path)


def load_tracker_config(path: Path, *, base_dir: Path | None = None) -> TrackerConfig:
    """Load the tracker YAML; relative paths inside it resolve against its directory."""
    path = Path(path).expanduser().resolve()
    data = read_yaml_file(path)
    if data.get("events_path"):
        data["events_path"] = _resolve_config_path(data["events_path"], (base_dir or path.parent).resolve())
    try:
        return TrackerConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid tracker config in {path}: {exc}") from exc


__all__ = [
    "AttendancePolicy",
    "ReviewerActivityPolicy",
    "ScoringPolicy",
    "StatusThresholds",
    "TrackerConfig",
    "exact",
    "load_tracker_config",
    "read_yaml_file",
]
