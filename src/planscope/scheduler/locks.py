"""Per-project exclusive locks for schedule recomputation.

Lock entries are reference counted and dropped once no thread holds or waits
for them, so the table only ever contains projects with work in flight.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class _LockEntry:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class KeyedLock:
    """A mutex per key (project id).

    Holding one key never blocks another. Locks are re-entrant, so a mutation
    that recomputes while holding its project's lock can call other locked
    operations on the same project from the same thread.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def active_keys(self) -> set[str]:
        """Keys currently held or waited on."""
        with self._guard:
            return set(self._entries)
