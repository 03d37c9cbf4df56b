"""Bounded fan-out/fan-in over independent per-user computations."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


def fan_out(func: Callable[[T], R], items: Sequence[T], max_workers: int) -> list[R]:
    """Apply ``func`` to every item on at most ``max_workers`` threads.

    Results come back in input order once every call has finished. If any call
    raises, the first failure (in input order) propagates and no results are
    returned.
    """
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        futures = [executor.submit(func, item) for item in items]
        return [future.result() for future in futures]
