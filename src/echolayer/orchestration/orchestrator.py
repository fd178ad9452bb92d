"""Orchestrator: sequences scorer, tracker and ledger per external event."""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from echolayer.contracts.enums import RewardKind
from echolayer.contracts.errors import InvalidInput, MetricsNotFound
from echolayer.contracts.events import (
    ContentCreated,
    ContentDiscovered,
    ContentPropagated,
    EventEnvelope,
    QualityImproved,
)
from echolayer.contracts.models import (
    ContentMetrics,
    ContentRecord,
    PoolStatus,
    PropagationAnalytics,
    PropagationSignal,
    RewardAnalytics,
    RewardGrant,
    RewardRecord,
    UserRewardStats,
    UserRewardSummary,
    as_utc,
)
from echolayer.core.ledger import RewardLedger
from echolayer.core.locks import KeyedLocks
from echolayer.orchestration.handlers import HANDLER_MAP
from echolayer.propagation.tracker import PropagationTracker
from echolayer.providers.content_store import ContentStore, InMemoryContentStore
from echolayer.providers.identity_source import IdentitySource, InMemoryIdentitySource
from echolayer.providers.settlement_sink import PlaceholderSettlementSink, SettlementSink
from echolayer.scoring.scorer import ContentScorer
from echolayer.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Score contribution recorded for creator residual and discovery grants
RESIDUAL_CONTRIBUTION_RATE = 0.1
DISCOVERY_CONTRIBUTION_RATE = 0.1


class Orchestrator:
    """Runs the scoring/propagation/reward pipeline for each event kind.

    Owns the content-metrics cache (through ``content_store``); every other
    piece of state belongs to the component that manages it. Work on the same
    content id is serialized; different content ids proceed in parallel.

    Example::

        orchestrator = Orchestrator.from_settings()
        reward_id = orchestrator.handle_content_created(
            ContentCreated(user_id="u1", content=content, quality_score=0.8)
        )
    """

    def __init__(
        self,
        scorer: ContentScorer,
        tracker: PropagationTracker,
        ledger: RewardLedger,
        content_store: ContentStore | None = None,
        identity_source: IdentitySource | None = None,
        default_influence: float = 0.5,
    ) -> None:
        if not 0.0 <= default_influence <= 1.0:
            raise InvalidInput("default_influence must be in [0, 1]", field="default_influence")
        self.scorer = scorer
        self.tracker = tracker
        self.ledger = ledger
        self.content_store = content_store or InMemoryContentStore()
        self.identity_source = identity_source or InMemoryIdentitySource()
        self.default_influence = default_influence
        self._content_locks = KeyedLocks()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        content_store: ContentStore | None = None,
        identity_source: IdentitySource | None = None,
        settlement_sink: SettlementSink | None = None,
    ) -> "Orchestrator":
        """Wire every component from a Settings instance."""
        settings = settings or get_settings()
        ledger = RewardLedger(
            daily_pool=settings.daily_reward_pool,
            multipliers=settings.reward_multipliers(),
            settlement_sink=settlement_sink or PlaceholderSettlementSink(prefix=settings.settlement_prefix),
        )
        return cls(
            scorer=ContentScorer(settings.scoring_weights()),
            tracker=PropagationTracker(settings.tracker_config()),
            ledger=ledger,
            content_store=content_store,
            identity_source=identity_source,
            default_influence=settings.default_user_influence,
        )

    # Scoring

    def score_content(
        self,
        content: ContentRecord,
        propagations: Sequence[PropagationSignal] = (),
        now: datetime | None = None,
    ) -> ContentMetrics:
        """Score without touching the cache."""
        return self.scorer.score(content, propagations, now=now)

    def update_content_metrics(
        self,
        content: ContentRecord,
        propagations: Sequence[PropagationSignal] = (),
        now: datetime | None = None,
    ) -> ContentMetrics:
        """Rescore a content item and overwrite its cached metrics."""
        with self._content_locks.hold(content.content_id):
            metrics = self.scorer.score(content, propagations, now=now)
            self.content_store.put_metrics(content.content_id, metrics)
        return metrics

    def get_content_metrics(self, content_id: str) -> ContentMetrics:
        metrics = self.content_store.get_metrics(content_id)
        if metrics is None:
            raise MetricsNotFound(content_id)
        return metrics

    def influence_of(self, user_id: str) -> float:
        """User influence, falling back to the configured default for unknown users."""
        influence = self.identity_source.get_influence(user_id)
        return self.default_influence if influence is None else influence

    # Event handling

    def handle_content_created(self, event: ContentCreated, now: datetime | None = None) -> str:
        """Score new content from zero propagations and grant the creation reward."""
        now = as_utc(now)
        metrics = self.update_content_metrics(event.content, (), now=now)
        amount = self.ledger.calculate_creation_reward(
            metrics.score, event.quality_score, event.initial_engagement
        )
        reward_id = self.ledger.award(
            event.user_id,
            event.content.content_id,
            RewardKind.CONTENT_CREATION,
            amount,
            metrics.score,
            now=now,
        )
        logger.info(
            "Content %s created by %s: score=%.2f tier=%s",
            event.content.content_id, event.user_id, metrics.score, metrics.tier.value,
        )
        return reward_id

    def handle_content_propagated(self, event: ContentPropagated, now: datetime | None = None) -> list[str]:
        """Record a hop, then reward the propagator and (if different) the creator.

        The item is rescored when the event carries its content record,
        otherwise the cached score is reused.

        Raises:
            MetricsNotFound: no content record supplied and the item was never scored
            InvalidInput: an explicit loop_id tracks a different content item
            LoopNotFound: an explicit loop_id is unknown
            PoolExhausted: the two grants together exceed the pool; neither is recorded
        """
        now = as_utc(now)
        content_id = event.content_id
        if event.content is not None and event.content.content_id != content_id:
            raise InvalidInput("content record does not match content_id", field="content")

        with self._content_locks.hold(content_id):
            if event.content is not None:
                metrics = self.scorer.score(event.content, event.propagations, now=now)
            else:
                metrics = self.get_content_metrics(content_id)

            if event.loop_id is not None:
                loop_id = event.loop_id
                owner = self.tracker.get_loop(loop_id).source_content_id
                if owner != content_id:
                    raise InvalidInput(
                        f"loop {loop_id} tracks content {owner}, not {content_id}", field="loop_id"
                    )
            else:
                loop_id = self._loop_for(content_id, now)
            outcome = self.tracker.record_propagation(
                loop_id, event.from_node, event.to_node, event.interaction_strength, now=now
            )
            if event.content is not None:
                self.content_store.put_metrics(content_id, metrics)

        influence = self.influence_of(event.propagator_id)
        amount = self.ledger.calculate_propagation_reward(
            metrics.score, outcome.edge_weight, influence, outcome.loop_strength
        )
        grants = [
            RewardGrant(
                user_id=event.propagator_id,
                content_id=content_id,
                kind=RewardKind.PROPAGATION_BONUS,
                amount=amount,
                score_contribution=metrics.score * outcome.edge_weight,
            )
        ]
        if event.propagator_id != event.creator_id:
            grants.append(
                RewardGrant(
                    user_id=event.creator_id,
                    content_id=content_id,
                    kind=RewardKind.ECHO_LOOP_PARTICIPATION,
                    amount=self.ledger.creator_residual(amount),
                    score_contribution=metrics.score * RESIDUAL_CONTRIBUTION_RATE,
                )
            )
        reward_ids = self.ledger.award_batch(grants, now=now)
        logger.info(
            "Content %s propagated by %s in loop %s: %d reward(s)",
            content_id, event.propagator_id, loop_id, len(reward_ids),
        )
        return reward_ids

    def handle_content_discovered(self, event: ContentDiscovered, now: datetime | None = None) -> str:
        """Grant a discovery bonus against the cached score."""
        metrics = self.get_content_metrics(event.content_id)
        influence = self.influence_of(event.discoverer_id)
        amount = self.ledger.calculate_discovery_reward(metrics.score, event.discovery_timing, influence)
        return self.ledger.award(
            event.discoverer_id,
            event.content_id,
            RewardKind.DISCOVERY_BONUS,
            amount,
            metrics.score * DISCOVERY_CONTRIBUTION_RATE,
            now=now,
        )

    def handle_quality_improved(self, event: QualityImproved, now: datetime | None = None) -> str:
        """Grant a quality bonus for a score improvement on previously scored content."""
        self.get_content_metrics(event.content_id)
        amount = self.ledger.calculate_quality_bonus(
            event.score_improvement,
            event.viral_coefficient,
            event.engagement_rate,
            event.retention_rate,
        )
        return self.ledger.award(
            event.user_id,
            event.content_id,
            RewardKind.QUALITY_BONUS,
            amount,
            event.score_improvement,
            now=now,
        )

    def dispatch(self, envelope: EventEnvelope) -> Any:
        """Route an envelope to its handler, using occurred_at as the evaluation time."""
        handler = HANDLER_MAP.get(envelope.event_name)
        if handler is None:
            raise InvalidInput(f"unknown event: {envelope.event_name}", field="event_name")
        logger.debug("Dispatching %s (trace %s)", envelope.event_name, envelope.trace_id)
        return handler(envelope, self)

    def _loop_for(self, content_id: str, now: datetime) -> str:
        """Oldest existing loop for content_id, or a new one. Caller holds the content lock."""
        loops = self.tracker.loops_for_content(content_id)
        if loops:
            return loops[0].loop_id
        return self.tracker.create_loop(content_id, now=now)

    # Queries and administration

    def user_rewards(self, user_id: str) -> UserRewardSummary:
        stats = self.ledger.get_stats(user_id)
        return UserRewardSummary(
            user_id=user_id,
            total_earned=stats.total_earned if stats else 0.0,
            pending=self.ledger.pending_total(user_id),
            multiplier=stats.current_multiplier if stats else 1.0,
        )

    def leaderboard(self, limit: int | None = None) -> list[UserRewardStats]:
        return self.ledger.leaderboard(limit)

    def pool_status(self) -> PoolStatus:
        return self.ledger.pool_status()

    def reset_pool(self, now: datetime | None = None) -> None:
        self.ledger.reset_pool(now=now)

    def flush_user(self, user_id: str) -> list[RewardRecord]:
        return self.ledger.flush(user_id)

    def cleanup_loops(self, max_age_hours: float | None = None, now: datetime | None = None) -> int:
        return self.tracker.cleanup(max_age_hours, now=now)

    def propagation_analytics(self, since: datetime) -> PropagationAnalytics:
        return self.tracker.analytics(since)

    def reward_analytics(self, since: datetime) -> RewardAnalytics:
        return self.ledger.reward_analytics(since)
