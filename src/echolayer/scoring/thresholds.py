"""Echo Index weights and tier thresholds."""

from pydantic import BaseModel, Field, model_validator

from echolayer.contracts.enums import Tier

WEIGHT_SUM_TOLERANCE = 1e-3

# Composite score cut-offs, checked highest first
TIER_THRESHOLDS: tuple[tuple[float, Tier], ...] = (
    (80.0, Tier.GOLD),
    (60.0, Tier.SILVER),
    (40.0, Tier.BRONZE),
)

SCORE_MIN = 0.0
SCORE_MAX = 100.0


class ScoringWeights(BaseModel):
    """Composite weights for originality/audience/temporal/quality. Must sum to 1.0."""

    originality: float = Field(default=0.30, ge=0, le=1)
    audience: float = Field(default=0.25, ge=0, le=1)
    temporal: float = Field(default=0.25, ge=0, le=1)
    quality: float = Field(default=0.20, ge=0, le=1)

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def validate_sum(self) -> "ScoringWeights":
        total = self.total()
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"factor weights must sum to 1.0, got {total:.4f}")
        return self

    def total(self) -> float:
        return self.originality + self.audience + self.temporal + self.quality


def determine_tier(score: float) -> Tier:
    """Step function: >=80 Gold, >=60 Silver, >=40 Bronze, else Basic."""
    for cutoff, tier in TIER_THRESHOLDS:
        if score >= cutoff:
            return tier
    return Tier.BASIC
