"""Guards against duplicate concurrent work on the same scene."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator, Set


class InFlightSet:
    """A lock-guarded set of keys with atomic check-and-insert.

    ``claim`` is the only way callers should mark work as in flight: it yields
    ``True`` when the key was free (and is now held until the block exits, on
    every exit path) or ``False`` when another caller already holds it.
    """

    def __init__(self, name: str = "in-flight") -> None:
        self.name = name
        self._keys: Set[Hashable] = set()
        self._lock = threading.Lock()

    def try_acquire(self, key: Hashable) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key: Hashable) -> None:
        with self._lock:
            self._keys.discard(key)

    @contextmanager
    def claim(self, key: Hashable) -> Iterator[bool]:
        acquired = self.try_acquire(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def snapshot(self) -> frozenset:
        with self._lock:
            return frozenset(self._keys)
