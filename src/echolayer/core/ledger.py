"""Reward Ledger: converts scores into bounded reward grants.

Owns the daily pool, per-user statistics and the pending/processed reward
collections. Pool withdrawals are serialized globally; statistics and
reward collections are serialized per user.
"""

import logging
import math
import threading
from collections.abc import Sequence
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from echolayer.contracts.enums import RewardCategory, RewardKind
from echolayer.contracts.errors import InvalidInput, PoolExhausted
from echolayer.contracts.models import (
    PoolStatus,
    RewardAnalytics,
    RewardGrant,
    RewardRecord,
    UserRewardStats,
    as_utc,
)
from echolayer.core.locks import KeyedLocks
from echolayer.core.pool import RewardPool, pool_guard
from echolayer.providers.settlement_sink import PlaceholderSettlementSink, SettlementSink

logger = logging.getLogger(__name__)

QUALITY_CONTENT_THRESHOLD = 0.7
ENGAGEMENT_BONUS_RATE = 0.1
ENGAGEMENT_BONUS_CAP = 0.5
PROPAGATION_BASE_RATE = 0.1
INFLUENCE_BONUS_RATE = 0.05
LOOP_BONUS_MIN_STRENGTH = 0.5
CREATOR_RESIDUAL_SHARE = 0.3
DISCOVERY_BASE_RATE = 0.05
DISCOVERY_INFLUENCE_RATE = 0.1
DISCOVERY_INFLUENCE_CAP = 0.3
QUALITY_BONUS_SCALE = 10.0

MULTIPLIER_CAP = 3.0
QUALITY_SHARE_FOR_BONUS = 0.2
PROPAGATION_SHARE_FOR_BONUS = 0.3
VELOCITY_FOR_BONUS = 0.5
VELOCITY_WINDOW_HOURS = 24

# Stats bucket for each reward kind; every kind must be listed
REWARD_CATEGORIES: dict[RewardKind, RewardCategory] = {
    RewardKind.CONTENT_CREATION: RewardCategory.CONTENT,
    RewardKind.QUALITY_BONUS: RewardCategory.QUALITY,
    RewardKind.PROPAGATION_BONUS: RewardCategory.PROPAGATION,
    RewardKind.ECHO_LOOP_PARTICIPATION: RewardCategory.PROPAGATION,
    RewardKind.DISCOVERY_BONUS: RewardCategory.UNCATEGORIZED,
    RewardKind.ENGAGEMENT_REWARD: RewardCategory.UNCATEGORIZED,
    RewardKind.COMMUNITY_CONTRIBUTION: RewardCategory.UNCATEGORIZED,
}

_unmapped_kinds = set(RewardKind) - REWARD_CATEGORIES.keys()
if _unmapped_kinds:
    raise RuntimeError(f"REWARD_CATEGORIES does not cover reward kinds: {sorted(_unmapped_kinds)}")


class RewardMultipliers(BaseModel):
    """Reward-type multipliers, fixed at construction."""

    base_rate: float = Field(default=1.0, ge=0)
    quality_multiplier: float = Field(default=1.5, ge=1)
    propagation_multiplier: float = Field(default=2.0, ge=1)

    model_config = {"extra": "forbid", "frozen": True}


def quality_bonus_multiplier(viral_coefficient: float, engagement_rate: float, retention_rate: float) -> float:
    """Step multiplier: viral > 2.0 -> 2.0, engagement > 0.8 -> 1.5, retention > 0.7 -> 1.2, else 1.0."""
    if viral_coefficient > 2.0:
        return 2.0
    if engagement_rate > 0.8:
        return 1.5
    if retention_rate > 0.7:
        return 1.2
    return 1.0


class RewardLedger:
    """Bounded reward distribution against a depletable daily pool.

    Example::

        ledger = RewardLedger(daily_pool=10_000)
        amount = ledger.calculate_creation_reward(score=62.0, quality=0.8, initial_engagement=2)
        reward_id = ledger.award("user-1", "content-1", RewardKind.CONTENT_CREATION, amount, 62.0)
        batch = ledger.flush("user-1")
    """

    def __init__(
        self,
        daily_pool: float,
        multipliers: RewardMultipliers | None = None,
        settlement_sink: SettlementSink | None = None,
    ) -> None:
        self.multipliers = multipliers or RewardMultipliers()
        self.settlement_sink = settlement_sink or PlaceholderSettlementSink()
        self._pool = RewardPool.full(daily_pool)
        self._pool_lock = threading.Lock()
        self._registry_lock = threading.Lock()
        self._user_locks = KeyedLocks()
        self._pending: dict[str, list[RewardRecord]] = {}
        self._processed: dict[str, list[RewardRecord]] = {}
        self._stats: dict[str, UserRewardStats] = {}

    # Reward formulas

    def calculate_creation_reward(self, score: float, quality: float, initial_engagement: float) -> float:
        """(score x base_rate + quality bonus) inflated by an engagement bonus capped at 0.5."""
        base = score * self.multipliers.base_rate
        quality_bonus = (
            base * (self.multipliers.quality_multiplier - 1.0)
            if quality > QUALITY_CONTENT_THRESHOLD
            else 0.0
        )
        engagement_bonus = min(initial_engagement * ENGAGEMENT_BONUS_RATE, ENGAGEMENT_BONUS_CAP)
        return (base + quality_bonus) * (1.0 + engagement_bonus)

    def calculate_propagation_reward(
        self,
        score: float,
        propagation_weight: float,
        influence: float,
        loop_strength: float,
    ) -> float:
        """score x weight x 0.1 + influence bonus + loop bonus when the loop is strong."""
        base = score * propagation_weight * PROPAGATION_BASE_RATE
        influence_bonus = influence * INFLUENCE_BONUS_RATE
        loop_bonus = (
            base * (self.multipliers.propagation_multiplier - 1.0)
            if loop_strength > LOOP_BONUS_MIN_STRENGTH
            else 0.0
        )
        return base + influence_bonus + loop_bonus

    @staticmethod
    def creator_residual(propagation_reward: float) -> float:
        """Share of a propagation reward passed back to the original creator."""
        return propagation_reward * CREATOR_RESIDUAL_SHARE

    def calculate_discovery_reward(self, score: float, discovery_timing: float, influence: float) -> float:
        """score x 0.05 x (1 + timing bonus + influence factor).

        discovery_timing is the elapsed share of the content's lifetime
        (0 = at creation); earlier discovery earns a linearly larger bonus.
        """
        timing_bonus = max(1.0 - discovery_timing, 0.0)
        influence_factor = min(influence * DISCOVERY_INFLUENCE_RATE, DISCOVERY_INFLUENCE_CAP)
        return score * DISCOVERY_BASE_RATE * (1.0 + timing_bonus + influence_factor)

    def calculate_quality_bonus(
        self,
        score_improvement: float,
        viral_coefficient: float,
        engagement_rate: float,
        retention_rate: float,
    ) -> float:
        base = score_improvement * QUALITY_BONUS_SCALE
        return base * quality_bonus_multiplier(viral_coefficient, engagement_rate, retention_rate)

    # Awards

    def award(
        self,
        user_id: str,
        content_id: str,
        kind: RewardKind,
        amount: float,
        score_contribution: float,
        now: datetime | None = None,
    ) -> str:
        """Grant a single reward. Returns the reward id.

        Raises:
            InvalidInput: amount is negative or not finite
            PoolExhausted: amount exceeds the remaining pool; nothing is recorded
        """
        if not math.isfinite(amount) or amount < 0:
            raise InvalidInput(f"reward amount must be a finite value >= 0, got {amount}", field="amount")
        grant = RewardGrant(
            user_id=user_id,
            content_id=content_id,
            kind=kind,
            amount=amount,
            score_contribution=score_contribution,
        )
        return self.award_batch([grant], now=now)[0]

    def award_batch(self, grants: Sequence[RewardGrant], now: datetime | None = None) -> list[str]:
        """Grant several rewards atomically: either all fit in the pool or none is recorded."""
        for grant in grants:
            if not math.isfinite(grant.amount):
                raise InvalidInput(f"reward amount must be finite, got {grant.amount}", field="amount")
        if not grants:
            return []
        now = as_utc(now)
        total = sum(g.amount for g in grants)

        with self._pool_lock:
            try:
                pool_guard(self._pool, total)
            except PoolExhausted:
                logger.warning(
                    "Rejected %d reward(s) totalling %.4f: pool remaining %.4f",
                    len(grants), total, self._pool.remaining,
                )
                raise
            self._pool.remaining -= total

        reward_ids = []
        for grant in grants:
            record = RewardRecord(
                user_id=grant.user_id,
                content_id=grant.content_id,
                kind=grant.kind,
                amount=grant.amount,
                score_contribution=grant.score_contribution,
                timestamp=now,
            )
            self._record(record, now)
            reward_ids.append(record.reward_id)
            logger.info(
                "Awarded %s %.4f to %s for %s (%s)",
                record.kind.value, record.amount, record.user_id, record.content_id, record.reward_id,
            )
        return reward_ids

    def _record(self, record: RewardRecord, now: datetime) -> None:
        user_id = record.user_id
        with self._user_locks.hold(user_id):
            with self._registry_lock:
                pending = self._pending.setdefault(user_id, [])
                stats = self._stats.setdefault(user_id, UserRewardStats(user_id=user_id))
            pending.append(record)

            stats.total_earned += record.amount
            category = REWARD_CATEGORIES[record.kind]
            if category is RewardCategory.CONTENT:
                stats.content_rewards += record.amount
            elif category is RewardCategory.PROPAGATION:
                stats.propagation_rewards += record.amount
            elif category is RewardCategory.QUALITY:
                stats.quality_bonuses += record.amount

            stats.reward_velocity = self._reward_velocity(user_id, now)
            stats.current_multiplier = self._user_multiplier(stats)

    def _reward_velocity(self, user_id: str, now: datetime) -> float:
        """Average reward units per hour over the trailing 24h, pending and processed."""
        cutoff = now - timedelta(hours=VELOCITY_WINDOW_HOURS)
        with self._registry_lock:
            records = list(self._pending.get(user_id, ())) + list(self._processed.get(user_id, ()))
        recent = sum(r.amount for r in records if r.timestamp >= cutoff)
        return recent / VELOCITY_WINDOW_HOURS

    def _user_multiplier(self, stats: UserRewardStats) -> float:
        """Derived from the user's own reward mix. Informational: no formula applies it."""
        multiplier = self.multipliers.base_rate
        if stats.quality_bonuses > stats.total_earned * QUALITY_SHARE_FOR_BONUS:
            multiplier += 0.2
        if stats.propagation_rewards > stats.total_earned * PROPAGATION_SHARE_FOR_BONUS:
            multiplier += 0.3
        if stats.reward_velocity > VELOCITY_FOR_BONUS:
            multiplier += 0.1
        return max(1.0, min(multiplier, MULTIPLIER_CAP))

    # Settlement

    def flush(self, user_id: str) -> list[RewardRecord]:
        """Settle every pending reward for user_id and move it to processed.

        Returns the settled batch; an empty pending set yields an empty list.
        """
        with self._user_locks.hold(user_id):
            with self._registry_lock:
                pending = list(self._pending.get(user_id, ()))
            if not pending:
                return []

            references = self.settlement_sink.settle([r.model_copy() for r in pending])
            if len(references) != len(pending):
                raise RuntimeError(
                    f"settlement sink returned {len(references)} references for {len(pending)} records"
                )
            for record, reference in zip(pending, references):
                record.settlement_ref = reference

            with self._registry_lock:
                self._pending.pop(user_id, None)
                self._processed.setdefault(user_id, []).extend(pending)

        logger.info("Flushed %d reward(s) for %s", len(pending), user_id)
        return [r.model_copy() for r in pending]

    # Queries

    def pending_rewards(self, user_id: str) -> list[RewardRecord]:
        with self._user_locks.hold(user_id):
            return [r.model_copy() for r in self._pending.get(user_id, ())]

    def processed_rewards(self, user_id: str) -> list[RewardRecord]:
        with self._user_locks.hold(user_id):
            return [r.model_copy() for r in self._processed.get(user_id, ())]

    def pending_total(self, user_id: str) -> float:
        return sum(r.amount for r in self.pending_rewards(user_id))

    def total_earned(self, user_id: str) -> float:
        stats = self.get_stats(user_id)
        return stats.total_earned if stats is not None else 0.0

    def get_stats(self, user_id: str) -> UserRewardStats | None:
        with self._user_locks.hold(user_id):
            stats = self._stats.get(user_id)
            return stats.model_copy() if stats is not None else None

    def leaderboard(self, limit: int | None = None) -> list[UserRewardStats]:
        """Rank every user by total earned, descending; ranks are 1..N.

        Ties keep the order in which users first received a reward.
        """
        if limit is not None and limit < 0:
            raise InvalidInput("limit must be >= 0", field="limit")
        with self._registry_lock:
            user_ids = list(self._stats)

        snapshot = []
        for user_id in user_ids:
            with self._user_locks.hold(user_id):
                snapshot.append(self._stats[user_id].model_copy())

        ranked = sorted(snapshot, key=lambda s: s.total_earned, reverse=True)
        for rank, stats in enumerate(ranked, start=1):
            stats.rank = rank
            with self._user_locks.hold(stats.user_id):
                self._stats[stats.user_id].rank = rank

        return ranked if limit is None else ranked[:limit]

    # Pool

    def reset_pool(self, now: datetime | None = None) -> None:
        """Start a new accounting period: remaining = daily budget."""
        with self._pool_lock:
            self._pool.remaining = self._pool.daily_budget
            self._pool.period_started_at = as_utc(now)
            started = self._pool.period_started_at
        logger.info(
            "Reward pool reset to %.4f for period starting %s", self._pool.daily_budget, started.isoformat()
        )

    def pool_status(self) -> PoolStatus:
        with self._pool_lock:
            return PoolStatus(
                daily_budget=self._pool.daily_budget,
                remaining=self._pool.remaining,
                utilization=self._pool.utilization,
                period_started_at=self._pool.period_started_at,
            )

    def reward_analytics(self, since: datetime) -> RewardAnalytics:
        """Settled distribution since a timestamp."""
        with self._registry_lock:
            records = [r.model_copy() for batch in self._processed.values() for r in batch]
        relevant = [r for r in records if r.timestamp >= since]

        by_kind: dict[RewardKind, float] = {}
        for record in relevant:
            by_kind[record.kind] = by_kind.get(record.kind, 0.0) + record.amount

        return RewardAnalytics(
            total_distributed=sum(r.amount for r in relevant),
            unique_recipients=len({r.user_id for r in relevant}),
            rewards_by_kind=by_kind,
            pool_utilization=self.pool_status().utilization,
        )
