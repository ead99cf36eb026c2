"""Read-only API over saved batch reports."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from traintrack import get_version
from traintrack.model.events import UnmatchedEvent
from traintrack.report.models import BatchReport, TraineeReport
from traintrack.report.serialize import REPORT_SUFFIX, load_report

DEFAULT_REPORTS_DIR = Path("reports")
REPORT_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class PortalSettings(BaseModel):
    """Runtime configuration for the portal."""

    reports_dir: Path = Field(default=DEFAULT_REPORTS_DIR)

    def resolve_report(self, name: str) -> Path:
        """Path of the saved report ``name``; never escapes ``reports_dir``."""
        if not REPORT_NAME.match(name):
            raise HTTPException(status_code=400, detail=f"Invalid report name {name!r}")
        root = self.reports_dir.resolve()
        stem = name[: -len(REPORT_SUFFIX)] if name.endswith(REPORT_SUFFIX) else name
        candidate = (root / f"{stem}{REPORT_SUFFIX}").resolve()
        try:
            candidate.relative_to(root)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Report {name} is outside of {root}.") from exc
        return candidate


@lru_cache
def get_settings() -> PortalSettings:
    reports_dir = os.getenv("PORTAL_REPORTS_DIR")
    return PortalSettings(reports_dir=Path(reports_dir).expanduser().resolve() if reports_dir else DEFAULT_REPORTS_DIR.resolve())


class HealthResponse(BaseModel):
    status: str
    version: str
    latest_report: str | None = None


class ReportListItem(BaseModel):
    name: str
    batch: str
    course: str
    generated_at: datetime
    modified_at: datetime
    trainees: int
    reviewers: int
    unmatched: int


app = FastAPI(title="traintrack portal", version=get_version())
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _iter_report_paths(settings: PortalSettings) -> List[Path]:
    reports_dir = settings.reports_dir
    if not reports_dir.exists():
        return []
    paths = [path for path in reports_dir.glob(f"*{REPORT_SUFFIX}") if path.is_file()]
    return sorted(paths, key=lambda path: (path.stat().st_mtime, path.name), reverse=True)


def _load(name: str, settings: PortalSettings) -> BatchReport:
    path = settings.resolve_report(name)
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"Report {name} not found")
    try:
        return load_report(path)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Report {name} could not be read") from exc


def _timestamp_for(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


@app.get("/health", response_model=HealthResponse)
def health(settings: PortalSettings = Depends(get_settings)) -> HealthResponse:
    paths = _iter_report_paths(settings)
    return HealthResponse(status="ok", version=get_version(), latest_report=paths[0].stem if paths else None)


@app.get("/reports", response_model=List[ReportListItem])
def list_reports(
    limit: int = Query(50, ge=1, le=500, description="Maximum reports to return"),
    offset: int = Query(0, ge=0, description="Number of reports to skip before listing"),
    settings: PortalSettings = Depends(get_settings),
) -> List[ReportListItem]:
    items: List[ReportListItem] = []
    for path in _iter_report_paths(settings)[offset : offset + limit]:
        try:
            report = load_report(path)
        except ValueError:
            continue
        items.append(
            ReportListItem(
                name=path.stem,
                batch=report.batch,
                course=report.course,
                generated_at=report.generated_at,
                modified_at=_timestamp_for(path),
                trainees=len(report.trainees),
                reviewers=len(report.reviewers),
                unmatched=len(report.unmatched),
            )
        )
    return items


@app.get("/reports/{name}", response_model=BatchReport)
def get_report(name: str, settings: PortalSettings = Depends(get_settings)) -> BatchReport:
    return _load(name, settings)


@app.get("/reports/{name}/trainees/{login}", response_model=TraineeReport)
def get_trainee(name: str, login: str, settings: PortalSettings = Depends(get_settings)) -> TraineeReport:
    report = _load(name, settings)
    trainee = report.trainee(login)
    if trainee is None:
        raise HTTPException(status_code=404, detail=f"Trainee {login} not in report {name}")
    return trainee


@app.get("/reports/{name}/unmatched", response_model=List[UnmatchedEvent])
def get_unmatched(
    name: str,
    kind: str | None = Query(None, description="Only events of this kind (pr, review, attendance)"),
    settings: PortalSettings = Depends(get_settings),
) -> List[UnmatchedEvent]:
    report = _load(name, settings)
    return [event for event in report.unmatched if kind is None or event.kind.value == kind]


@app.exception_handler(HTTPException)
async def http_error_handler(_: Any, exc: HTTPException) -> JSONResponse:
    payload: Dict[str, Any] = {"detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=payload)
