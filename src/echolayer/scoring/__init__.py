"""Echo Index scoring: factor calculators, weights, tiers and the scorer."""

from echolayer.scoring.factors import (
    apply_temporal_decay,
    clamp_score,
    compute_audience,
    compute_originality,
    compute_quality,
    compute_temporal,
)
from echolayer.scoring.scorer import ContentScorer
from echolayer.scoring.thresholds import TIER_THRESHOLDS, ScoringWeights, determine_tier

__all__ = [
    "apply_temporal_decay",
    "clamp_score",
    "compute_audience",
    "compute_originality",
    "compute_quality",
    "compute_temporal",
    "ContentScorer",
    "determine_tier",
    "ScoringWeights",
    "TIER_THRESHOLDS",
]
