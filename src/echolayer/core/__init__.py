"""Core state: reward pool, reward ledger and per-entity locks."""

from echolayer.core.ledger import (
    CREATOR_RESIDUAL_SHARE,
    REWARD_CATEGORIES,
    RewardLedger,
    RewardMultipliers,
    quality_bonus_multiplier,
)
from echolayer.core.locks import KeyedLocks
from echolayer.core.pool import RewardPool, pool_guard

__all__ = [
    "CREATOR_RESIDUAL_SHARE",
    "KeyedLocks",
    "pool_guard",
    "quality_bonus_multiplier",
    "REWARD_CATEGORIES",
    "RewardLedger",
    "RewardMultipliers",
    "RewardPool",
]
