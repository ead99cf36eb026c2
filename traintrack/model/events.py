"""External events consumed by the reconcilers, and the unmatched-event record.

Events arrive as plain mappings (usually a JSON dump produced by the fetching
collaborator). Parsing is tolerant: a record that fails validation is routed
to the unmatched collector with a ``malformed`` reason instead of stopping the
run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from traintrack.model.roster import normalize_login
from traintrack.utils.dates import as_utc

if TYPE_CHECKING:
    from traintrack.reconcile.unmatched import UnmatchedCollector

LOGGER = logging.getLogger(__name__)


class EventKind(str, Enum):
    PR = "pr"
    REVIEW = "review"
    ATTENDANCE = "attendance"


class UnmatchedReason(str, Enum):
    """Why an event could not be bound to a slot."""

    MALFORMED = "malformed"
    UNKNOWN_AUTHOR = "unknown-author"
    UNKNOWN_REPOSITORY = "unknown-repository"
    NO_MATCHING_ASSIGNMENT = "no-matching-assignment"
    SUPERSEDED = "superseded"
    UNKNOWN_REVIEWER = "unknown-reviewer"
    SELF_REVIEW = "self-review"
    UNKNOWN_TRAINEE = "unknown-trainee"
    OUT_OF_RANGE = "out-of-range"
    DUPLICATE = "duplicate"


class UnmatchedEvent(BaseModel):
    """An event kept verbatim for manual follow-up."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    identity: str
    reason: UnmatchedReason
    detail: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


class PrEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str = Field(..., min_length=1)
    repo_name: str = Field(..., min_length=1)
    title: str
    url: str = Field(..., min_length=1)
    number: int = Field(..., ge=1)
    is_merged: bool = False
    is_closed: Optional[bool] = None
    review_decisions: Tuple[str, ...] = ()
    labels: Tuple[str, ...] = ()
    head_branch: Optional[str] = None
    updated_at: datetime

    @field_validator("updated_at")
    @classmethod
    def _normalize_updated(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def author_key(self) -> str:
        return normalize_login(self.login)

    @property
    def closed(self) -> bool:
        return self.is_merged if self.is_closed is None else self.is_closed

    @property
    def is_open(self) -> bool:
        return not self.is_merged and not self.closed

    @property
    def identity(self) -> str:
        return self.url


class PrRef(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    repo_name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    number: int = Field(..., ge=1)


class ReviewEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    reviewer_login: str = Field(..., min_length=1)
    pr: PrRef
    reviewed_at: datetime

    @field_validator("reviewed_at")
    @classmethod
    def _normalize_reviewed(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def reviewer_key(self) -> str:
        return normalize_login(self.reviewer_login)

    @property
    def identity(self) -> str:
        return f"{self.pr.url}#{self.reviewer_key}@{self.reviewed_at.isoformat()}"


class AttendanceEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    login: str = Field(..., min_length=1)
    day: date = Field(..., alias="date")
    code: Optional[str] = None
    timestamp: Optional[datetime] = None
    register_url: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def trainee_key(self) -> str:
        return normalize_login(self.login)

    @property
    def identity(self) -> str:
        # Every field takes part, so two distinct check-ins never share an identity.
        stamp = self.timestamp.isoformat() if self.timestamp else ""
        return f"{self.trainee_key}|{self.day.isoformat()}|{self.code or ''}|{stamp}|{self.register_url or ''}"


@dataclass
class ParsedEvents:
    prs: List[PrEvent] = field(default_factory=list)
    reviews: List[ReviewEvent] = field(default_factory=list)
    attendance: List[AttendanceEvent] = field(default_factory=list)


_EVENT_MODELS = (
    (EventKind.PR, "prs", PrEvent),
    (EventKind.REVIEW, "reviews", ReviewEvent),
    (EventKind.ATTENDANCE, "attendance", AttendanceEvent),
)


def jsonable_fields(raw: Any) -> Dict[str, Any]:
    """Copy a raw record into plain JSON values so it survives a report round trip."""
    if not isinstance(raw, Mapping):
        return {"value": json.loads(json.dumps(raw, default=str))}
    return json.loads(json.dumps(dict(raw), default=str, sort_keys=True))


def raw_identity(raw: Any) -> str:
    if isinstance(raw, Mapping):
        url = raw.get("url")
        if isinstance(url, str) and url:
            return url
        pr = raw.get("pr")
        if isinstance(pr, Mapping) and isinstance(pr.get("url"), str):
            reviewer = raw.get("reviewer_login", "")
            return f"{pr['url']}#{reviewer}@{raw.get('reviewed_at', '')}"
    return json.dumps(raw, default=str, sort_keys=True)


def parse_events(raw: Mapping[str, Any], collector: "UnmatchedCollector") -> ParsedEvents:
    """Validate every record of an event dump; malformed ones go to ``collector``."""
    parsed = ParsedEvents()
    for kind, section, model in _EVENT_MODELS:
        records = raw.get(section) or []
        target = getattr(parsed, section)
        for record in records:
            try:
                target.append(model.model_validate(record))
            except ValidationError as exc:
                detail = "; ".join(
                    f"{'.'.join(str(loc) for loc in error['loc']) or '<root>'}: {error['msg']}" for error in exc.errors()
                )
                LOGGER.warning("Malformed %s event %s: %s", kind.value, raw_identity(record), detail)
                collector.add(
                    UnmatchedEvent(
                        kind=kind,
                        identity=raw_identity(record),
                        reason=UnmatchedReason.MALFORMED,
                        detail=detail,
                        raw=jsonable_fields(record),
                    )
                )
    return parsed


def unmatched_from(event: PrEvent | ReviewEvent | AttendanceEvent, reason: UnmatchedReason, *, detail: str = "", identity: str | None = None) -> UnmatchedEvent:
    """Build the unmatched record for an event that parsed but could not be placed."""
    if isinstance(event, PrEvent):
        kind = EventKind.PR
    elif isinstance(event, ReviewEvent):
        kind = EventKind.REVIEW
    elif isinstance(event, AttendanceEvent):
        kind = EventKind.ATTENDANCE
    else:
        raise TypeError(f"Unsupported event type {type(event).__name__}")
    return UnmatchedEvent(
        kind=kind,
        identity=identity or event.identity,
        reason=reason,
        detail=detail,
        raw=event.model_dump(mode="json", by_alias=True),
    )


__all__ = [
    "AttendanceEvent",
    "EventKind",
    "ParsedEvents",
    "PrEvent",
    "PrRef",
    "ReviewEvent",
    "UnmatchedEvent",
    "UnmatchedReason",
    "jsonable_fields",
    "parse_events",
    "unmatched_from",
]
