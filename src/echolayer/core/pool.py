"""Daily reward pool model and guard."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from echolayer.contracts.errors import InvalidInput, PoolExhausted


class RewardPool(BaseModel):
    """Depletable daily budget of reward units."""

    daily_budget: float = Field(ge=0)
    remaining: float = Field(ge=0)
    period_started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"extra": "forbid"}

    @classmethod
    def full(cls, daily_budget: float) -> "RewardPool":
        """Pool at the start of an accounting period."""
        return cls(daily_budget=daily_budget, remaining=daily_budget)

    @property
    def distributed(self) -> float:
        return self.daily_budget - self.remaining

    @property
    def utilization(self) -> float:
        if self.daily_budget <= 0:
            return 0.0
        return self.distributed / self.daily_budget


def pool_guard(pool: RewardPool, amount: float) -> None:
    """Check that withdrawing amount would not overdraw the pool.

    Raises PoolExhausted if amount exceeds the remaining balance. Spending
    exactly the remaining balance is allowed.

    Args:
        pool: Current pool state
        amount: Reward units about to be granted
    """
    if amount < 0:
        raise InvalidInput("amount must be >= 0", field="amount")
    if amount > pool.remaining:
        raise PoolExhausted(requested=amount, remaining=pool.remaining)
