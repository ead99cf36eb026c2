"""JSON (de)serialization of a :class:`BatchReport`.

Slots keep their ``kind`` tag on the wire, so a report read back from JSON has
exactly the variants and displayed fields it was written with.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from traintrack.report.models import BatchReport

REPORT_SUFFIX = ".json"


def report_to_dict(report: BatchReport) -> Dict[str, Any]:
    return report.model_dump(mode="json")


def report_to_json(report: BatchReport, *, indent: int | None = 2) -> str:
    return report.model_dump_json(indent=indent)


def report_from_dict(data: Dict[str, Any]) -> BatchReport:
    try:
        return BatchReport.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid report payload: {exc}") from exc


def report_from_json(text: str) -> BatchReport:
    try:
        return BatchReport.model_validate_json(text)
    except ValidationError as exc:
        raise ValueError(f"Invalid report JSON: {exc}") from exc


def save_report(report: BatchReport, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report_to_json(report) + "\n", encoding="utf-8")
    return path


def load_report(path: Path) -> BatchReport:
    path = Path(path)
    try:
        return report_from_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ValueError(f"Invalid report in {path}") from exc


def summarize(report: BatchReport) -> Dict[str, Any]:
    """Small listing entry used by the portal index."""
    return {
        "batch": report.batch,
        "course": report.course,
        "generated_at": report.generated_at.isoformat(),
        "trainees": len(report.trainees),
        "reviewers": len(report.reviewers),
        "unmatched": len(report.unmatched),
    }


__all__ = [
    "REPORT_SUFFIX",
    "load_report",
    "report_from_dict",
    "report_from_json",
    "report_to_dict",
    "report_to_json",
    "save_report",
    "summarize",
]
