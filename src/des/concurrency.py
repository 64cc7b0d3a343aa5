"""Per-entity mutual exclusion and sequential id allocation.

Mutations on one company, credential or contract are serialised by a
re-entrant lock keyed on (table, entity_id). Locks for several entities
are always acquired in sorted key order so two operations touching the
same pair cannot deadlock. Table-wide sections (identity uniqueness on
mint) use the reserved id 0, which no entity ever receives.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterator

TABLE_KEY = 0

LockKey = tuple[str, int]


class IdSequence:
    """Gap-free, strictly increasing integer ids starting at 1.

    Usage:
        seq = IdSequence()
        seq.next_id()    # 1
        seq.next_id()    # 2
    """

    def __init__(self, current: int = 0) -> None:
        if current < 0:
            raise ValueError("Sequence value cannot be negative")
        self._current = current
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            self._current += 1
            return self._current

    @property
    def current(self) -> int:
        return self._current


class EntityLocks:
    """Registry of re-entrant locks, one per (table, entity_id)."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[LockKey, threading.RLock] = {}

    def _lock_for(self, key: LockKey) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: LockKey) -> Iterator[None]:
        """Acquire every listed entity lock for the duration of the block."""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self._lock_for(key))
            yield
