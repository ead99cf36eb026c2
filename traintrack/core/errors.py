"""Exception types raised by the tracker.

Ordinary unmatched or ambiguous input is never an exception; it becomes an
``unknown`` classification or an unmatched event. Only a malformed static
configuration stops a run.
"""

from __future__ import annotations

from typing import Iterable, List


class TrackerError(Exception):
    """Base class for tracker failures."""


class ConfigurationError(TrackerError, ValueError):
    """The curriculum/roster pair is structurally inconsistent."""

    def __init__(self, problems: Iterable[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems) or "invalid configuration")


class ReconciliationError(TrackerError):
    """An internal invariant of the reconcilers was violated."""


__all__ = ["ConfigurationError", "ReconciliationError", "TrackerError"]
