"""Propagation Graph Tracker and Echo Loop metrics."""

from echolayer.propagation.tracker import (
    LOOP_AMPLIFICATION_CAP,
    PATH_AMPLIFICATION_CAP,
    TYPE_COMPATIBILITY,
    PropagationTracker,
    TrackerConfig,
    compute_edge_weight,
    node_compatibility,
    path_convergence,
)

__all__ = [
    "compute_edge_weight",
    "LOOP_AMPLIFICATION_CAP",
    "node_compatibility",
    "PATH_AMPLIFICATION_CAP",
    "path_convergence",
    "PropagationTracker",
    "TrackerConfig",
    "TYPE_COMPATIBILITY",
]
