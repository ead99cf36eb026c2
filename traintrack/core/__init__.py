"""
Configuration, structural validation, errors and the provenance log.

Nothing here depends on the reconcilers, so the outer surfaces can load and
check a config without running a batch.
"""

from .config import (
    AttendancePolicy,
    ReviewerActivityPolicy,
    ScoringPolicy,
    StatusThresholds,
    TrackerConfig,
    load_tracker_config,
)
from .errors import ConfigurationError, ReconciliationError, TrackerError
from .provenance import ProvenanceEvent, ProvenanceLogger
from .validation import ValidationResult, ensure_valid_roster, validate_roster

__all__ = [
    "AttendancePolicy",
    "ConfigurationError",
    "ProvenanceEvent",
    "ProvenanceLogger",
    "ReconciliationError",
    "ReviewerActivityPolicy",
    "ScoringPolicy",
    "StatusThresholds",
    "TrackerConfig",
    "TrackerError",
    "ValidationResult",
    "ensure_valid_roster",
    "load_tracker_config",
    "validate_roster",
]
