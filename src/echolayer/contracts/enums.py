"""Canonical enum definitions for scoring, propagation and rewards."""

from enum import Enum


class Tier(str, Enum):
    """Echo Index tier, a step function of the composite score."""

    BASIC = "Basic"
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"


class NodeType(str, Enum):
    """Kind of actor a propagation node stands for."""

    USER = "user"
    CONTENT = "content"
    PLATFORM = "platform"


class LoopState(str, Enum):
    """Lifecycle of an Echo Loop."""

    CREATED = "created"
    ACTIVE = "active"
    AMPLIFIED = "amplified"
    STALE = "stale"


class RewardKind(str, Enum):
    """Reward grant categories."""

    CONTENT_CREATION = "content_creation"
    QUALITY_BONUS = "quality_bonus"
    PROPAGATION_BONUS = "propagation_bonus"
    DISCOVERY_BONUS = "discovery_bonus"
    ENGAGEMENT_REWARD = "engagement_reward"
    ECHO_LOOP_PARTICIPATION = "echo_loop_participation"
    COMMUNITY_CONTRIBUTION = "community_contribution"


class RewardCategory(str, Enum):
    """Per-user stats bucket a reward kind is aggregated into."""

    CONTENT = "content"
    PROPAGATION = "propagation"
    QUALITY = "quality"
    UNCATEGORIZED = "uncategorized"
