"""Load the tracker configuration and event dump from disk."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from traintrack.core.config import TrackerConfig, load_tracker_config
from traintrack.core.provenance import ProvenanceEvent, ProvenanceLogger
from traintrack.core.validation import ensure_valid_roster

from .context import TrackerContext, TrackerPaths

DEFAULT_CONFIG_PATH = Path("config/tracker.yaml")
CONFIG_ENV = "TRAINTRACK_CONFIG"
EVENTS_ENV = "TRAINTRACK_EVENTS"
LOGGER = logging.getLogger(__name__)

EVENT_SECTIONS = ("prs", "reviews", "attendance")


def _capture_env(keys: tuple[str, ...]) -> Dict[str, str]:
    """Return a filtered snapshot of environment variables for provenance."""
    snapshot: Dict[str, str] = {}
    for key in keys:
        value = os.getenv(key)
        if value is not None:
            snapshot[key] = value
    return snapshot


def resolve_config_path(config_path: Path | None = None, *, repo_root: Path | None = None) -> Path:
    """Explicit path, then ``$TRAINTRACK_CONFIG``, then ``config/tracker.yaml``."""
    repo_root = (repo_root or Path.cwd()).resolve()
    if config_path is None:
        env_value = os.getenv(CONFIG_ENV)
        config_path = Path(env_value) if env_value else repo_root / DEFAULT_CONFIG_PATH
    config_path = Path(config_path).expanduser()
    if not config_path.is_absolute():
        config_path = repo_root / config_path
    return config_path.resolve()


def load_event_dump(path: Path) -> Dict[str, Any]:
    """Read the JSON event dump; a missing section is treated as empty."""
    path = Path(path).expanduser().resolve()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    for section in EVENT_SECTIONS:
        records = data.setdefault(section, [])
        if not isinstance(records, list):
            raise ValueError(f"Section {section!r} in {path} must be a list")
    unknown = sorted(set(data) - set(EVENT_SECTIONS))
    if unknown:
        LOGGER.warning("Ignoring unknown event dump sections in %s: %s", path, ", ".join(unknown))
    return data


def load_config(config_path: Path | None = None, *, repo_root: Path | None = None) -> TrackerConfig:
    return load_tracker_config(resolve_config_path(config_path, repo_root=repo_root))


def bootstrap_tracker(
    config_path: Path | None = None,
    *,
    events_path: Path | None = None,
    repo_root: Path | None = None,
    log_dir: Path | None = None,
    env_keys: tuple[str, ...] = (CONFIG_ENV, EVENTS_ENV),
) -> TrackerContext:
    """
    Load ``.env``, the tracker config and the event dump, and check the roster.

    Parameters
    ----------
    config_path:
        Tracker YAML. Defaults to ``$TRAINTRACK_CONFIG`` or ``config/tracker.yaml``.
    events_path:
        JSON event dump. Defaults to ``$TRAINTRACK_EVENTS`` or the config's ``events_path``.
    log_dir:
        When given, provenance events are appended to ``log_dir/provenance.jsonl``.
    """
    repo_root = (repo_root or Path.cwd()).resolve()
    load_dotenv(repo_root / ".env")
    config_file = resolve_config_path(config_path, repo_root=repo_root)
    config = load_tracker_config(config_file)
    ensure_valid_roster(config.roster)

    if events_path is None and os.getenv(EVENTS_ENV):
        events_path = Path(os.environ[EVENTS_ENV])
    events_path = events_path or config.events_path
    if events_path is None:
        raise ValueError(f"No event dump given and {config_file} has no events_path")

    paths = TrackerPaths(repo_root=repo_root, config_path=config_file, events_path=events_path, logs_dir=log_dir)
    provenance = ProvenanceLogger(paths.provenance_path) if paths.provenance_path else None
    events = load_event_dump(paths.events_path)

    ctx = TrackerContext(
        config=config,
        paths=paths,
        events=events,
        env=_capture_env(env_keys),
        provenance=provenance,
    )
    if ctx.provenance is not None:
        ctx.provenance.log(
            ProvenanceEvent(
                stage="load",
                message="Tracker config and event dump loaded",
                batch=config.batch.name,
                payload={
                    "config_path": str(paths.config_path),
                    "events_path": str(paths.events_path),
                    "counts": {section: len(events[section]) for section in EVENT_SECTIONS},
                },
            )
        )
    LOGGER.info("Loaded batch %s from %s", config.batch.name, config_file)
    return ctx


__all__ = ["bootstrap_tracker", "load_config", "load_event_dump", "resolve_config_path"]
