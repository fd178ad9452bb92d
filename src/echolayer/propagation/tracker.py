"""Propagation Graph Tracker: owns Echo Loops and their resonance metrics.

Each loop is a set of weighted paths through user/content/platform nodes.
Every mutation recomputes path resonance (compatibility-weighted temporal
decay), the loop's total resonance, and loop strength (resonance, path
convergence and recency). Loops whose total resonance crosses the configured
threshold are amplified, with per-path and loop-level caps.
"""

import logging
import math
import threading
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from echolayer.contracts.enums import LoopState, NodeType
from echolayer.contracts.errors import InvalidInput, LoopNotFound
from echolayer.contracts.models import (
    EchoLoop,
    PropagationAnalytics,
    PropagationNode,
    PropagationOutcome,
    PropagationPath,
    as_utc,
)
from echolayer.core.locks import KeyedLocks
from echolayer.scoring.factors import apply_temporal_decay

logger = logging.getLogger(__name__)

# Node-type pair compatibility; user<->content highest, platform<->platform lowest
TYPE_COMPATIBILITY: dict[tuple[NodeType, NodeType], float] = {
    (NodeType.USER, NodeType.USER): 0.8,
    (NodeType.USER, NodeType.CONTENT): 0.9,
    (NodeType.USER, NodeType.PLATFORM): 0.5,
    (NodeType.CONTENT, NodeType.USER): 0.9,
    (NodeType.CONTENT, NodeType.CONTENT): 0.5,
    (NodeType.CONTENT, NodeType.PLATFORM): 0.7,
    (NodeType.PLATFORM, NodeType.USER): 0.6,
    (NodeType.PLATFORM, NodeType.CONTENT): 0.5,
    (NodeType.PLATFORM, NodeType.PLATFORM): 0.5,
}

_missing_pairs = {(a, b) for a in NodeType for b in NodeType} - TYPE_COMPATIBILITY.keys()
if _missing_pairs:
    raise RuntimeError(f"TYPE_COMPATIBILITY does not cover node type pairs: {sorted(_missing_pairs)}")

PATH_AMPLIFICATION_CAP = 1.5
LOOP_AMPLIFICATION_CAP = 1.3


class TrackerConfig(BaseModel):
    """Tracker tuning, fixed at construction."""

    decay_factor: float = Field(default=0.9, gt=0, le=1)
    resonance_threshold: float = Field(default=0.3, ge=0)
    max_loop_age_hours: float = Field(default=48.0, gt=0)
    strength_floor: float = Field(default=0.1, ge=0, le=1)
    max_path_nodes: int = Field(default=10, ge=2)

    model_config = {"extra": "forbid", "frozen": True}


def compute_edge_weight(
    from_node: PropagationNode,
    to_node: PropagationNode,
    interaction_strength: float,
) -> float:
    """Weight of a single hop from from_node to to_node."""
    influence_factor = from_node.influence_weight * 0.4
    reach_factor = math.log(from_node.reach) / 20.0 if from_node.reach > 0 else 0.0
    engagement_factor = from_node.engagement_rate * 0.3
    target_receptivity = to_node.engagement_rate * 0.3
    return (influence_factor + reach_factor + engagement_factor + target_receptivity) * interaction_strength


def node_compatibility(a: PropagationNode, b: PropagationNode) -> float:
    """Blend of type-pair constant, influence similarity and engagement similarity."""
    type_compatibility = TYPE_COMPATIBILITY[(a.node_type, b.node_type)]
    influence_sync = 1.0 - abs(a.influence_weight - b.influence_weight)
    engagement_sync = 1.0 - abs(a.engagement_rate - b.engagement_rate)
    return (type_compatibility + influence_sync + engagement_sync) / 3.0


def path_convergence(loop: EchoLoop) -> float:
    """Share of node visits that revisit a node already seen elsewhere in the loop."""
    visits = Counter(node.node_id for path in loop.paths for node in path.nodes)
    total = sum(visits.values())
    if total == 0:
        return 0.0
    repeats = sum(count - 1 for count in visits.values())
    return repeats / total


class PropagationTracker:
    """Owns the collection of active Echo Loops.

    Mutations are serialized per loop; the loop table itself is guarded by a
    short-lived lock so loops for unrelated content progress in parallel.
    Query methods work on deep-copied snapshots.

    Example::

        tracker = PropagationTracker()
        loop_id = tracker.create_loop("content-1")
        outcome = tracker.record_propagation(loop_id, author_node, reader_node, 1.0)
        print(outcome.loop_strength)
    """

    def __init__(self, config: TrackerConfig | None = None) -> None:
        self.config = config or TrackerConfig()
        self._loops: dict[str, EchoLoop] = {}
        self._table_lock = threading.Lock()
        self._loop_locks = KeyedLocks()

    def create_loop(self, content_id: str, now: datetime | None = None) -> str:
        """Allocate a new empty loop for content_id. No dedup by content id."""
        if not content_id:
            raise InvalidInput("content_id is required", field="content_id")
        now = as_utc(now)
        echo_loop = EchoLoop(source_content_id=content_id, created_at=now, last_updated=now)
        with self._table_lock:
            self._loops[echo_loop.loop_id] = echo_loop
        logger.info("Created echo loop %s for content %s", echo_loop.loop_id, content_id)
        return echo_loop.loop_id

    def record_propagation(
        self,
        loop_id: str,
        from_node: PropagationNode,
        to_node: PropagationNode,
        interaction_strength: float,
        now: datetime | None = None,
    ) -> PropagationOutcome:
        """Add a hop to the loop and recompute its metrics.

        The hop extends the first path whose last node is from_node (while
        that path is below the depth limit); otherwise it starts a new
        two-node path.

        Raises:
            InvalidInput: interaction_strength is negative or not finite
            LoopNotFound: loop_id is unknown
        """
        if not math.isfinite(interaction_strength) or interaction_strength < 0:
            raise InvalidInput(
                f"interaction_strength must be a finite value >= 0, got {interaction_strength}",
                field="interaction_strength",
            )
        now = as_utc(now)
        weight = compute_edge_weight(from_node, to_node, interaction_strength)

        with self._hold_live(loop_id) as live:
            # Work on a copy; the stored loop is replaced only once recomputation succeeds
            echo_loop = live.model_copy(deep=True)
            self._attach(echo_loop, from_node, to_node, weight)
            echo_loop.last_updated = now
            amplified = self._recompute(echo_loop, now)
            with self._table_lock:
                self._loops[loop_id] = echo_loop
            outcome = PropagationOutcome(
                loop_id=loop_id,
                source_content_id=echo_loop.source_content_id,
                edge_weight=weight,
                loop_strength=echo_loop.loop_strength,
                total_resonance=echo_loop.total_resonance,
                amplified=amplified,
            )

        logger.debug(
            "Loop %s: %s -> %s weight=%.4f strength=%.4f resonance=%.4f",
            loop_id, from_node.node_id, to_node.node_id,
            weight, outcome.loop_strength, outcome.total_resonance,
        )
        if amplified:
            logger.info("Loop %s amplified (total resonance %.4f)", loop_id, outcome.total_resonance)
        return outcome

    def get_loop(self, loop_id: str) -> EchoLoop:
        """Snapshot of a single loop."""
        with self._hold_live(loop_id) as echo_loop:
            return echo_loop.model_copy(deep=True)

    def loops_for_content(self, content_id: str) -> list[EchoLoop]:
        """Snapshots of every loop tracking content_id, oldest first."""
        loops = [loop for loop in self._snapshot() if loop.source_content_id == content_id]
        return sorted(loops, key=lambda loop: loop.created_at)

    def cleanup(self, max_age_hours: float | None = None, now: datetime | None = None) -> int:
        """Remove loops that are both stale and weak.

        A loop is removed only when its last update is older than the cutoff
        AND its strength is below the floor. Old but strong loops survive and
        are marked stale.

        Returns:
            Number of loops removed
        """
        if max_age_hours is None:
            max_age_hours = self.config.max_loop_age_hours
        if max_age_hours < 0:
            raise InvalidInput("max_age_hours must be >= 0", field="max_age_hours")
        now = as_utc(now)
        cutoff = now - timedelta(hours=max_age_hours)

        with self._table_lock:
            loop_ids = list(self._loops)

        removed = 0
        for loop_id in loop_ids:
            dropped = False
            with self._loop_locks.hold(loop_id):
                with self._table_lock:
                    echo_loop = self._loops.get(loop_id)
                    if echo_loop is None or echo_loop.last_updated >= cutoff:
                        continue
                    if echo_loop.loop_strength < self.config.strength_floor:
                        del self._loops[loop_id]
                        dropped = True
                    else:
                        echo_loop.state = LoopState.STALE
            if dropped:
                removed += 1
                self._loop_locks.discard(loop_id)

        logger.info("Echo loop cleanup removed %d of %d loops", removed, len(loop_ids))
        return removed

    def analytics(self, since: datetime) -> PropagationAnalytics:
        """Aggregate metrics over loops created at or after since."""
        relevant = [loop for loop in self._snapshot() if loop.created_at >= since]
        total_loops = len(relevant)
        avg_strength = sum(l.loop_strength for l in relevant) / total_loops if total_loops else 0.0
        return PropagationAnalytics(
            total_loops=total_loops,
            avg_loop_strength=avg_strength,
            total_propagation_paths=sum(len(l.paths) for l in relevant),
            high_resonance_loops=sum(
                1 for l in relevant if l.total_resonance > self.config.resonance_threshold
            ),
            resonance_threshold=self.config.resonance_threshold,
        )

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._loops)

    def _get_live(self, loop_id: str) -> EchoLoop:
        with self._table_lock:
            echo_loop = self._loops.get(loop_id)
        if echo_loop is None:
            raise LoopNotFound(loop_id)
        return echo_loop

    @contextmanager
    def _hold_live(self, loop_id: str) -> Iterator[EchoLoop]:
        """Hold the lock of an existing loop. Unknown ids leave no lock entry behind."""
        self._get_live(loop_id)
        try:
            with self._loop_locks.hold(loop_id):
                yield self._get_live(loop_id)
        except LoopNotFound:
            self._loop_locks.discard(loop_id)
            raise

    def _snapshot(self) -> list[EchoLoop]:
        with self._table_lock:
            loop_ids = list(self._loops)
        snapshots = []
        for loop_id in loop_ids:
            with self._loop_locks.hold(loop_id):
                with self._table_lock:
                    echo_loop = self._loops.get(loop_id)
                if echo_loop is not None:
                    snapshots.append(echo_loop.model_copy(deep=True))
        return snapshots

    def _attach(
        self,
        echo_loop: EchoLoop,
        from_node: PropagationNode,
        to_node: PropagationNode,
        weight: float,
    ) -> None:
        for path in echo_loop.paths:
            last = path.last_node
            if (
                last is not None
                and last.node_id == from_node.node_id
                and len(path.nodes) < self.config.max_path_nodes
            ):
                path.nodes.append(to_node)
                path.base_weight += weight
                return
        echo_loop.paths.append(
            PropagationPath(
                nodes=[from_node, to_node],
                base_weight=weight,
                total_weight=weight,
                decay_rate=self.config.decay_factor,
            )
        )

    def _path_resonance(self, path: PropagationPath, now: datetime) -> float:
        if len(path.nodes) < 2:
            return 0.0
        resonance = 0.0
        compatibility_sum = 0.0
        for current, following in zip(path.nodes, path.nodes[1:]):
            compatibility = node_compatibility(current, following)
            compatibility_sum += compatibility
            hours = max((now - current.timestamp).total_seconds() / 3600.0, 0.0)
            resonance += apply_temporal_decay(compatibility, hours, path.decay_rate)
        if compatibility_sum <= 0:
            return 0.0
        return resonance / compatibility_sum

    def _loop_strength(self, echo_loop: EchoLoop, now: datetime) -> float:
        if not echo_loop.paths:
            return 0.0
        average_resonance = echo_loop.total_resonance / len(echo_loop.paths)
        convergence = path_convergence(echo_loop)
        age_hours = max((now - echo_loop.created_at).total_seconds() / 3600.0, 0.0)
        recency = max(1.0 / (1.0 + age_hours * 0.01), 0.1)
        strength = average_resonance * 0.5 + convergence * 0.3 + recency * 0.2
        return max(0.0, min(strength, 1.0))

    def _recompute(self, echo_loop: EchoLoop, now: datetime) -> bool:
        """Recompute all derived metrics from the nodes. Returns True if amplified."""
        total = 0.0
        for path in echo_loop.paths:
            path.resonance_factor = self._path_resonance(path, now)
            path.total_weight = path.base_weight
            total += path.resonance_factor
        echo_loop.total_resonance = total
        echo_loop.loop_strength = self._loop_strength(echo_loop, now)

        threshold = self.config.resonance_threshold
        if total <= threshold:
            echo_loop.state = LoopState.ACTIVE if echo_loop.paths else LoopState.CREATED
            return False

        # Factors apply to freshly derived values, so repeated passes never compound
        amplification = 1.0 + (total - threshold) * 0.5
        path_factor = min(amplification, PATH_AMPLIFICATION_CAP)
        for path in echo_loop.paths:
            path.total_weight = path.base_weight * path_factor
            path.resonance_factor *= path_factor
        echo_loop.total_resonance = total * min(amplification, LOOP_AMPLIFICATION_CAP)
        echo_loop.state = LoopState.AMPLIFIED
        return True
