"""Content Scorer: combines the four factors into an Echo Index and tier."""

import logging
from collections.abc import Sequence
from datetime import datetime

from echolayer.contracts.models import (
    ContentMetrics,
    ContentRecord,
    FactorBreakdown,
    PropagationSignal,
    as_utc,
)
from echolayer.scoring.factors import (
    clamp_score,
    compute_audience,
    compute_originality,
    compute_quality,
    compute_temporal,
)
from echolayer.scoring.thresholds import ScoringWeights, determine_tier

logger = logging.getLogger(__name__)


class ContentScorer:
    """Deterministic Echo Index computation over supplied inputs.

    Example::

        scorer = ContentScorer()
        metrics = scorer.score(content, propagations, now=now)
        print(metrics.score, metrics.tier)
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def compute_factors(
        self,
        content: ContentRecord,
        propagations: Sequence[PropagationSignal],
        now: datetime,
    ) -> FactorBreakdown:
        """Compute the four sub-scores."""
        return FactorBreakdown(
            originality=compute_originality(content, propagations, now),
            audience=compute_audience(propagations),
            temporal=compute_temporal(content, propagations, now),
            quality=compute_quality(content),
        )

    def composite(self, factors: FactorBreakdown) -> float:
        """Weighted sum of the factors, clamped to [0, 100]."""
        w = self.weights
        return clamp_score(
            factors.originality * w.originality
            + factors.audience * w.audience
            + factors.temporal * w.temporal
            + factors.quality * w.quality
        )

    def score(
        self,
        content: ContentRecord,
        propagations: Sequence[PropagationSignal] = (),
        now: datetime | None = None,
    ) -> ContentMetrics:
        """Score a content item against its current propagation signals.

        Args:
            content: The content record
            propagations: Propagation signals observed so far (may be empty)
            now: Evaluation time (defaults to current UTC time)

        Returns:
            ContentMetrics with composite score, tier and factor breakdown
        """
        now = as_utc(now)
        factors = self.compute_factors(content, propagations, now)
        score = self.composite(factors)
        tier = determine_tier(score)
        logger.debug(
            "Scored %s: score=%.2f tier=%s propagations=%d",
            content.content_id, score, tier.value, len(propagations),
        )
        return ContentMetrics(
            content_id=content.content_id,
            factors=factors,
            score=score,
            tier=tier,
            updated_at=now,
        )
