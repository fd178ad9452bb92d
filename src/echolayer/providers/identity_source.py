"""Identity source interface for user influence scores."""

import threading
from typing import Protocol

from echolayer.contracts.errors import InvalidInput


class IdentitySource(Protocol):
    """Protocol for looking up a user's influence score in [0, 1]."""

    def get_influence(self, user_id: str) -> float | None:
        """Return the influence score, or None if the user is unknown."""
        ...


class InMemoryIdentitySource:
    """Mock identity source for tests and local runs."""

    def __init__(self, scores: dict[str, float] | None = None) -> None:
        self._scores: dict[str, float] = {}
        self._lock = threading.Lock()
        for user_id, score in (scores or {}).items():
            self.set_influence(user_id, score)

    def set_influence(self, user_id: str, score: float) -> None:
        """Register or overwrite a user's influence score."""
        if not 0.0 <= score <= 1.0:
            raise InvalidInput(f"influence must be in [0, 1], got {score}", field="influence")
        with self._lock:
            self._scores[user_id] = score

    def get_influence(self, user_id: str) -> float | None:
        with self._lock:
            return self._scores.get(user_id)
