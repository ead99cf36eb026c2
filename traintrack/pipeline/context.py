"""Shared context objects for a tracker run."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from traintrack.core.config import TrackerConfig
from traintrack.core.provenance import ProvenanceLogger


class TrackerPaths(BaseModel):
    """Files a run reads from and writes to."""

    repo_root: Path
    config_path: Path
    events_path: Path
    logs_dir: Optional[Path] = None

    @field_validator("repo_root", "config_path", "events_path", "logs_dir", mode="before")
    @classmethod
    def _expand(cls, value: Path | str | None) -> Path | None:
        if value is None:
            return None
        return Path(value).expanduser().resolve()

    @property
    def provenance_path(self) -> Optional[Path]:
        return self.logs_dir / "provenance.jsonl" if self.logs_dir else None


class TrackerContext(BaseModel):
    """Everything loaded before reconciliation starts."""

    config: TrackerConfig
    paths: TrackerPaths
    events: Dict[str, Any] = Field(default_factory=dict)
    env: Dict[str, str] = Field(default_factory=dict)
    provenance: Optional[ProvenanceLogger] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


__all__ = ["TrackerContext", "TrackerPaths"]
