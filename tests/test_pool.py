"""Tests for the reward pool and pool guard."""

import pytest

from echolayer.contracts.errors import InvalidInput, PoolExhausted
from echolayer.core.pool import RewardPool, pool_guard


class TestRewardPool:
    """Test RewardPool model."""

    def test_full_pool(self) -> None:
        pool = RewardPool.full(1000.0)
        assert pool.remaining == 1000.0
        assert pool.distributed == 0.0
        assert pool.utilization == 0.0

    def test_utilization(self) -> None:
        pool = RewardPool(daily_budget=200.0, remaining=50.0)
        assert pool.distributed == 150.0
        assert pool.utilization == pytest.approx(0.75)

    def test_zero_budget_utilization_is_zero(self) -> None:
        assert RewardPool.full(0.0).utilization == 0.0

    def test_negative_budget_rejected(self) -> None:
        with pytest.raises(ValueError):
            RewardPool.full(-1.0)


class TestPoolGuard:
    """Test pool_guard blocks overdrafts."""

    def test_allows_within_remaining(self) -> None:
        pool_guard(RewardPool(daily_budget=10.0, remaining=5.0), 3.0)

    def test_allows_exactly_remaining(self) -> None:
        pool_guard(RewardPool(daily_budget=10.0, remaining=5.0), 5.0)

    def test_blocks_over_remaining(self) -> None:
        """Test a 10-unit request against 5 remaining raises and leaves the pool alone."""
        pool = RewardPool(daily_budget=10.0, remaining=5.0)
        with pytest.raises(PoolExhausted) as exc_info:
            pool_guard(pool, 10.0)
        assert exc_info.value.requested == 10.0
        assert exc_info.value.remaining == 5.0
        assert pool.remaining == 5.0

    def test_negative_amount_rejected(self) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            pool_guard(RewardPool.full(10.0), -1.0)
        assert exc_info.value.field == "amount"
