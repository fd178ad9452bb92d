"""Typed failures surfaced by the scoring, propagation and reward core."""


class EchoLayerError(Exception):
    """Base class for all core failures."""


class InvalidInput(EchoLayerError, ValueError):
    """Raised for malformed or out-of-range input, before any state mutation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(EchoLayerError, KeyError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


class LoopNotFound(NotFoundError):
    """Raised when an Echo Loop id is unknown to the tracker."""

    def __init__(self, loop_id: str) -> None:
        super().__init__(f"Echo Loop not found: {loop_id}", key=loop_id)


class MetricsNotFound(NotFoundError):
    """Raised when a content id was never scored."""

    def __init__(self, content_id: str) -> None:
        super().__init__(f"Content metrics not found: {content_id}", key=content_id)


class PoolExhausted(EchoLayerError):
    """Raised when a reward would exceed the remaining daily pool."""

    def __init__(self, requested: float, remaining: float) -> None:
        super().__init__(
            f"Daily reward pool exhausted: requested {requested:.4f} > remaining {remaining:.4f}"
        )
        self.requested = requested
        self.remaining = remaining
