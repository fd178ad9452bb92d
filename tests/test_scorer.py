"""Tests for ContentScorer, weights and tiers."""

from datetime import datetime, timedelta, timezone

import pytest

from echolayer.contracts.enums import Tier
from echolayer.contracts.models import ContentRecord, FactorBreakdown
from echolayer.scoring.scorer import ContentScorer
from echolayer.scoring.thresholds import ScoringWeights, determine_tier

from factories import make_content, make_signal


class TestScoringWeights:
    """Test the composite weight invariant."""

    def test_default_weights_sum_to_one(self) -> None:
        weights = ScoringWeights()
        assert weights.total() == pytest.approx(1.0, abs=1e-3)
        assert (weights.originality, weights.audience, weights.temporal, weights.quality) == (
            0.30,
            0.25,
            0.25,
            0.20,
        )

    def test_custom_weights_summing_to_one(self) -> None:
        weights = ScoringWeights(originality=0.25, audience=0.25, temporal=0.25, quality=0.25)
        assert weights.total() == pytest.approx(1.0)

    def test_weights_not_summing_to_one_rejected(self) -> None:
        with pytest.raises(ValueError, match="sum to 1.0"):
            ScoringWeights(originality=0.5, audience=0.5, temporal=0.5, quality=0.5)

    def test_weights_are_frozen(self) -> None:
        weights = ScoringWeights()
        with pytest.raises(ValueError):
            weights.originality = 0.9


class TestDetermineTier:
    """Test the tier step function."""

    @pytest.mark.parametrize(
        ("score", "tier"),
        [
            (0.0, Tier.BASIC),
            (39.99, Tier.BASIC),
            (40.0, Tier.BRONZE),
            (59.99, Tier.BRONZE),
            (60.0, Tier.SILVER),
            (79.99, Tier.SILVER),
            (80.0, Tier.GOLD),
            (100.0, Tier.GOLD),
        ],
    )
    def test_thresholds(self, score: float, tier: Tier) -> None:
        assert determine_tier(score) == tier


class TestContentScorer:
    """Test ContentScorer composite scoring."""

    def test_composite_is_weighted_sum(self) -> None:
        scorer = ContentScorer()
        factors = FactorBreakdown(originality=50.0, audience=40.0, temporal=20.0, quality=10.0)
        assert scorer.composite(factors) == pytest.approx(15.0 + 10.0 + 5.0 + 2.0)

    def test_unpropagated_content_scores_quality_only(self, now: datetime) -> None:
        """Test new content scores 0 originality/temporal and only the weighted quality factor."""
        metrics = ContentScorer().score(make_content(created_at=now), (), now=now)
        assert metrics.factors.originality == 0.0
        assert metrics.factors.temporal == 0.0
        assert metrics.score == pytest.approx(metrics.factors.quality * 0.20)
        assert metrics.tier == Tier.BASIC
        assert metrics.updated_at == now

    def test_deterministic(self, now: datetime) -> None:
        """Test identical inputs produce bit-identical output."""
        created = now - timedelta(hours=6)
        content = make_content(created_at=created)
        signals = [make_signal(created + timedelta(hours=i)) for i in range(10)]
        scorer = ContentScorer()
        first = scorer.score(content, signals, now=now)
        second = scorer.score(content, signals, now=now)
        assert first.score == second.score
        assert first.factors == second.factors

    def test_viral_content_reaches_silver(self, now: datetime) -> None:
        created = now - timedelta(hours=6)
        content = make_content(created_at=created)
        signals = [make_signal(created + timedelta(hours=i)) for i in range(10)]
        metrics = ContentScorer().score(content, signals, now=now)
        assert 0.0 <= metrics.score <= 100.0
        assert metrics.tier in (Tier.SILVER, Tier.GOLD)

    def test_custom_weights_change_composite(self, now: datetime) -> None:
        content = make_content(created_at=now)
        quality_only = ContentScorer(ScoringWeights(originality=0.0, audience=0.0, temporal=0.0, quality=1.0))
        metrics = quality_only.score(content, (), now=now)
        assert metrics.score == pytest.approx(metrics.factors.quality)

    def test_naive_created_at_scores_as_utc(self, now: datetime) -> None:
        """Test a record parsed without a UTC offset scores like its UTC equivalent."""
        created = now - timedelta(hours=6)
        aware = make_content(created_at=created)
        naive = ContentRecord.model_validate(
            {**aware.model_dump(mode="json"), "created_at": created.replace(tzinfo=None).isoformat()}
        )
        signals = [make_signal(created + timedelta(hours=i)) for i in range(10)]

        assert naive.created_at.tzinfo is timezone.utc
        scorer = ContentScorer()
        assert scorer.score(naive, signals, now=now).factors == scorer.score(aware, signals, now=now).factors
