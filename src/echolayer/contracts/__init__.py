"""Canonical contracts: enums, models, events and errors."""

from echolayer.contracts.enums import LoopState, NodeType, RewardCategory, RewardKind, Tier
from echolayer.contracts.errors import (
    EchoLayerError,
    InvalidInput,
    LoopNotFound,
    MetricsNotFound,
    NotFoundError,
    PoolExhausted,
)
from echolayer.contracts.events import (
    EVENT_CONTENT_CREATED,
    EVENT_CONTENT_DISCOVERED,
    EVENT_CONTENT_PROPAGATED,
    EVENT_QUALITY_IMPROVED,
    ContentCreated,
    ContentDiscovered,
    ContentPropagated,
    EventEnvelope,
    QualityImproved,
)
from echolayer.contracts.models import (
    ContentMetrics,
    ContentRecord,
    EchoLoop,
    FactorBreakdown,
    PoolStatus,
    PropagationAnalytics,
    PropagationNode,
    PropagationOutcome,
    PropagationPath,
    PropagationSignal,
    RewardAnalytics,
    RewardGrant,
    RewardRecord,
    UserRewardStats,
    UserRewardSummary,
)

__all__ = [
    "ContentCreated",
    "ContentDiscovered",
    "ContentMetrics",
    "ContentPropagated",
    "ContentRecord",
    "EchoLayerError",
    "EchoLoop",
    "EVENT_CONTENT_CREATED",
    "EVENT_CONTENT_DISCOVERED",
    "EVENT_CONTENT_PROPAGATED",
    "EVENT_QUALITY_IMPROVED",
    "EventEnvelope",
    "FactorBreakdown",
    "InvalidInput",
    "LoopNotFound",
    "LoopState",
    "MetricsNotFound",
    "NodeType",
    "NotFoundError",
    "PoolExhausted",
    "PoolStatus",
    "PropagationAnalytics",
    "PropagationNode",
    "PropagationOutcome",
    "PropagationPath",
    "PropagationSignal",
    "QualityImproved",
    "RewardAnalytics",
    "RewardCategory",
    "RewardGrant",
    "RewardKind",
    "RewardRecord",
    "Tier",
    "UserRewardStats",
    "UserRewardSummary",
]
