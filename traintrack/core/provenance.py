"""Append-only JSONL record of what each tracker run did, one line per stage."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProvenanceEvent(BaseModel):
    stage: str = Field(..., description="Run stage: load, reconcile, score or report.")
    message: str
    batch: Optional[str] = Field(default=None, description="Name of the batch the run was for.")
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class ProvenanceLogger:
    """Writes stage events to ``output_path`` and reads them back."""

    def __init__(self, output_path: Path) -> None:
        self.output_path = Path(output_path).expanduser()
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: ProvenanceEvent | Dict[str, Any]) -> ProvenanceEvent:
        record = event if isinstance(event, ProvenanceEvent) else ProvenanceEvent.model_validate(event)
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(f"{record.model_dump_json()}\n")
        return record

    def extend(self, events: Iterable[ProvenanceEvent | Dict[str, Any]]) -> None:
        for event in events:
            self.log(event)

    def read(self, *, stage: Optional[str] = None) -> List[ProvenanceEvent]:
        """Events logged so far, oldest first, optionally only those of ``stage``."""
        if not self.output_path.exists():
            return []
        records = [
            ProvenanceEvent.model_validate_json(line)
            for line in self.output_path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
        return [record for record in records if stage is None or record.stage == stage]


__all__ = ["ProvenanceEvent", "ProvenanceLogger"]
