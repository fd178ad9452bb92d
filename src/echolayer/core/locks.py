"""Per-entity lock table for serializing read-modify-write sequences."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    """Lazily created lock per key (content id, loop id, user id).

    Operations on different keys proceed in parallel; operations on the
    same key are serialized.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        """Return the lock for key, creating it on first use."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for key for the duration of the block."""
        with self.get(key):
            yield

    def discard(self, key: str) -> bool:
        """Drop the lock for key if nobody holds it. Returns True if dropped."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                return False
            if not lock.acquire(blocking=False):
                return False
            try:
                del self._locks[key]
            finally:
                lock.release()
            return True

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
