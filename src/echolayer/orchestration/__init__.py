"""Event orchestration: the pipeline coordinator and its dispatch table."""

from echolayer.orchestration.handlers import HANDLER_MAP
from echolayer.orchestration.orchestrator import Orchestrator

__all__ = [
    "HANDLER_MAP",
    "Orchestrator",
]
