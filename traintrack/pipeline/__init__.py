"""Loading and running a tracker batch."""

from __future__ import annotations

from .bootstrap import bootstrap_tracker, load_event_dump
from .context import TrackerContext, TrackerPaths
from .runtime import PrPlacement, locate_pr, run_batch

__all__ = [
    "PrPlacement",
    "TrackerContext",
    "TrackerPaths",
    "bootstrap_tracker",
    "load_event_dump",
    "locate_pr",
    "run_batch",
]
