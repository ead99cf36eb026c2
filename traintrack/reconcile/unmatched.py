"""Append-only collector for events that could not be placed in a slot."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Set, Tuple

from traintrack.core.errors import ReconciliationError
from traintrack.model.events import EventKind, UnmatchedEvent, UnmatchedReason

LOGGER = logging.getLogger(__name__)

# (kind, identity, parsed) - a record that failed validation never collides
# with a well-formed event that happens to share its URL.
_Key = Tuple[EventKind, str, bool]


def _key(kind: EventKind, identity: str, *, malformed: bool = False) -> _Key:
    return (kind, identity, not malformed)


class UnmatchedCollector:
    """Thread-safe, first-seen-ordered set of unmatched events.

    An event that landed in a slot is ``claim``-ed; collecting a claimed event
    (or claiming a collected one) is an internal error, since every event must
    end up in exactly one place.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[UnmatchedEvent] = []
        self._seen: Dict[_Key, UnmatchedEvent] = {}
        self._claimed: Set[_Key] = set()

    def add(self, event: UnmatchedEvent) -> bool:
        """Record ``event``; returns False when the same event was already collected."""
        key = _key(event.kind, event.identity, malformed=event.reason is UnmatchedReason.MALFORMED)
        with self._lock:
            if key in self._claimed:
                raise ReconciliationError(f"{event.kind.value} event {event.identity} was already placed in a slot")
            if key in self._seen:
                return False
            self._seen[key] = event
            self._events.append(event)
        LOGGER.debug("Unmatched %s event %s (%s)", event.kind.value, event.identity, event.reason.value)
        return True

    def claim(self, kind: EventKind, identity: str) -> None:
        key = _key(kind, identity)
        with self._lock:
            if key in self._seen:
                raise ReconciliationError(f"{kind.value} event {identity} is both matched and unmatched")
            self._claimed.add(key)

    def merge(self, other: "UnmatchedCollector") -> None:
        """Fold ``other``'s claims and events into this collector, keeping its order."""
        if other is self:
            return
        with other._lock:
            claimed = set(other._claimed)
            events = list(other._events)
        for kind, identity, _ in claimed:
            self.claim(kind, identity)
        for event in events:
            self.add(event)

    def events(self) -> Tuple[UnmatchedEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def is_claimed(self, kind: EventKind, identity: str) -> bool:
        with self._lock:
            return _key(kind, identity) in self._claimed

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


__all__ = ["UnmatchedCollector"]
