"""
Reconciliation and scoring engine for cohort-based training programs.

The package is importable without any of the outer surfaces (CLI, portal)
being configured; everything under ``traintrack.reconcile`` and
``traintrack.metrics`` is pure computation over supplied values.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("traintrack")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
