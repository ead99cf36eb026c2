"""Per-trainee fan-out shared by the reconcilers."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def map_in_order(func: Callable[[T], R], items: Sequence[T], *, workers: int = 1) -> List[R]:
    """Apply ``func`` to every item, on a thread pool when ``workers > 1``.

    Results always come back in ``items`` order, so callers see the same output
    for any worker count.
    """
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=min(workers, len(items)), thread_name_prefix="traintrack") as pool:
        return list(pool.map(func, items))


__all__ = ["map_in_order"]
