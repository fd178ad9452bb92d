"""Pydantic v2 models for content scoring, Echo Loops and reward grants."""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from echolayer.contracts.enums import LoopState, NodeType, RewardKind, Tier

PAID_PROPAGATION_TYPE = "paid_promotion"
QUALITY_INDICATOR_KEYS = ("originality", "readability", "informativeness")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None = None) -> datetime:
    """Current UTC time for None; naive values are taken to be UTC."""
    if value is None:
        return _utc_now()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BaseContractModel(BaseModel):
    """Base model for all contracts."""

    model_config = {"extra": "forbid", "frozen": False}

    @field_validator("*")
    @classmethod
    def normalize_datetimes(cls, v: object) -> object:
        """Naive datetimes are read as UTC so every timestamp compares with aware clocks."""
        if isinstance(v, datetime):
            return as_utc(v)
        return v


class ContentRecord(BaseContractModel):
    """A piece of content as seen by the scorer."""

    content_id: str = Field(min_length=1)
    author_id: str = Field(min_length=1)
    platform: str = "other"
    body: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    quality_indicators: dict[str, float] = Field(default_factory=dict)

    @field_validator("quality_indicators")
    @classmethod
    def validate_quality_indicators(cls, v: dict[str, float]) -> dict[str, float]:
        """Each externally supplied indicator must lie in [0, 1]."""
        for name, value in v.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"quality indicator {name!r} must be in [0, 1], got {value}")
        return v


class PropagationSignal(BaseContractModel):
    """One observed propagation of a content item onto a platform."""

    source_platform: str
    target_platform: str
    propagation_type: str = "share"
    created_at: datetime = Field(default_factory=_utc_now)
    reach: int = Field(default=0, ge=0)
    engagement: int = Field(default=0, ge=0)

    @property
    def is_organic(self) -> bool:
        return self.propagation_type != PAID_PROPAGATION_TYPE


class FactorBreakdown(BaseContractModel):
    """The four Echo Index factors, each normalized to [0, 100]."""

    originality: float = Field(default=0.0, ge=0, le=100)
    audience: float = Field(default=0.0, ge=0, le=100)
    temporal: float = Field(default=0.0, ge=0, le=100)
    quality: float = Field(default=0.0, ge=0, le=100)


class ContentMetrics(BaseContractModel):
    """Cached score state for one content item."""

    content_id: str
    factors: FactorBreakdown
    score: float = Field(ge=0, le=100)
    tier: Tier
    updated_at: datetime = Field(default_factory=_utc_now)


class PropagationNode(BaseContractModel):
    """An actor/platform a content item passes through. Immutable once built."""

    node_id: str = Field(min_length=1)
    node_type: NodeType
    influence_weight: float = Field(default=0.5, ge=0, le=1)
    reach: int = Field(default=0, ge=0)
    engagement_rate: float = Field(default=0.0, ge=0, le=1)
    timestamp: datetime = Field(default_factory=_utc_now)

    model_config = {"extra": "forbid", "frozen": True}


class PropagationPath(BaseContractModel):
    """Ordered chain of nodes with accumulated weight and resonance.

    ``base_weight`` is the raw sum of edge weights; ``total_weight`` and
    ``resonance_factor`` are derived on every recomputation of the loop.
    """

    nodes: list[PropagationNode] = Field(default_factory=list)
    base_weight: float = 0.0
    total_weight: float = 0.0
    resonance_factor: float = 0.0
    decay_rate: float = Field(gt=0, le=1)

    @property
    def last_node(self) -> PropagationNode | None:
        return self.nodes[-1] if self.nodes else None


class EchoLoop(BaseContractModel):
    """Propagation graph tracked for one content item."""

    loop_id: str = Field(default_factory=lambda: f"loop_{uuid4()}")
    source_content_id: str
    paths: list[PropagationPath] = Field(default_factory=list)
    total_resonance: float = 0.0
    loop_strength: float = Field(default=0.0, ge=0, le=1)
    state: LoopState = LoopState.CREATED
    created_at: datetime = Field(default_factory=_utc_now)
    last_updated: datetime = Field(default_factory=_utc_now)


class PropagationOutcome(BaseContractModel):
    """What a single propagation event did to its loop."""

    loop_id: str
    source_content_id: str
    edge_weight: float
    loop_strength: float
    total_resonance: float
    amplified: bool = False


class PropagationAnalytics(BaseContractModel):
    """Aggregate view over loops created since a timestamp."""

    total_loops: int = 0
    avg_loop_strength: float = 0.0
    total_propagation_paths: int = 0
    high_resonance_loops: int = 0
    resonance_threshold: float


class RewardRecord(BaseContractModel):
    """A single reward grant. Pending until a settlement reference is assigned."""

    reward_id: str = Field(default_factory=lambda: f"reward_{uuid4()}")
    user_id: str
    content_id: str
    kind: RewardKind
    amount: float = Field(ge=0)
    score_contribution: float = 0.0
    timestamp: datetime = Field(default_factory=_utc_now)
    settlement_ref: str | None = None

    @property
    def is_processed(self) -> bool:
        return self.settlement_ref is not None


class UserRewardStats(BaseContractModel):
    """Aggregated reward statistics for one user."""

    user_id: str
    total_earned: float = 0.0
    content_rewards: float = 0.0
    propagation_rewards: float = 0.0
    quality_bonuses: float = 0.0
    current_multiplier: float = Field(default=1.0, ge=1, le=3)
    rank: int = Field(default=0, ge=0)
    reward_velocity: float = 0.0


class UserRewardSummary(BaseContractModel):
    """Reward query result for a single user."""

    user_id: str
    total_earned: float
    pending: float
    multiplier: float


class PoolStatus(BaseContractModel):
    """Daily reward pool snapshot."""

    daily_budget: float
    remaining: float
    utilization: float
    period_started_at: datetime


class RewardAnalytics(BaseContractModel):
    """Settled reward distribution since a timestamp."""

    total_distributed: float = 0.0
    unique_recipients: int = 0
    rewards_by_kind: dict[RewardKind, float] = Field(default_factory=dict)
    pool_utilization: float = 0.0


class RewardGrant(BaseContractModel):
    """A reward about to be granted; becomes a RewardRecord once the pool accepts it."""

    user_id: str = Field(min_length=1)
    content_id: str = Field(min_length=1)
    kind: RewardKind
    amount: float = Field(ge=0)
    score_contribution: float = 0.0
