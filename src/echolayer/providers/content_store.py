"""Content store interface for cached content metrics."""

import threading
from typing import Protocol

from echolayer.contracts.models import ContentMetrics


class ContentStore(Protocol):
    """Protocol for reading and writing cached content metrics."""

    def get_metrics(self, content_id: str) -> ContentMetrics | None:
        """Return cached metrics for content_id, or None if never scored."""
        ...

    def put_metrics(self, content_id: str, metrics: ContentMetrics) -> None:
        """Store (overwrite) metrics for content_id."""
        ...


class InMemoryContentStore:
    """Dict-backed store. Returns copies so callers cannot mutate cached state."""

    def __init__(self) -> None:
        self._metrics: dict[str, ContentMetrics] = {}
        self._lock = threading.Lock()

    def get_metrics(self, content_id: str) -> ContentMetrics | None:
        with self._lock:
            metrics = self._metrics.get(content_id)
        return metrics.model_copy(deep=True) if metrics is not None else None

    def put_metrics(self, content_id: str, metrics: ContentMetrics) -> None:
        with self._lock:
            self._metrics[content_id] = metrics.model_copy(deep=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
