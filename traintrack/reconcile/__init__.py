"""Reconcilers that bind external events to slots, and the unmatched collector."""

from .attendance import attendance_fraction, reconcile_attendance
from .submissions import classify_pr, reconcile_submissions
from .unmatched import UnmatchedCollector

__all__ = [
    "UnmatchedCollector",
    "attendance_fraction",
    "classify_pr",
    "reconcile_attendance",
    "reconcile_submissions",
]
