"""Reward rate model - stake amount and pool snapshot to reward estimates.

Key Concepts:
- A staker earns a pro-rata share of the pool emission
- daily = reward_rate_per_second * 86400 * (stake / total_staked)
- monthly = daily * 30, yearly = daily * 365
- An empty pool makes the share undefined; the result is Unavailable, not zero
"""

import math
from dataclasses import dataclass
from typing import Union

from .pool_state import SECONDS_PER_DAY, PoolStateSnapshot
from .results import Unavailable, safe_ratio

DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365

EMPTY_POOL = "pool has no stake"


@dataclass(frozen=True)
class RewardEstimate:
    """Reward estimates for one stake amount."""
    daily: float
    monthly: float
    yearly: float

    def in_usd(self, price: float) -> 'RewardEstimate':
        """Value the estimate at a token price."""
        return RewardEstimate(
            daily=self.daily * price,
            monthly=self.monthly * price,
            yearly=self.yearly * price,
        )


@dataclass(frozen=True)
class StakeShare:
    """A stake's share of the pool and of the total supply, in percent."""
    percentage_of_pool: float
    percentage_of_supply: float


class RewardRateModel:
    """Convert a stake amount plus pool snapshot into reward estimates."""

    def estimate(self, stake_amount: float, snapshot: PoolStateSnapshot) -> Union[RewardEstimate, Unavailable]:
        """
        Estimate daily, monthly and yearly rewards.

        Args:
            stake_amount: Amount staked by the participant
            snapshot: Current pool snapshot

        Returns:
            RewardEstimate, or Unavailable when the pool is empty
        """
        share = safe_ratio(stake_amount, snapshot.total_staked, EMPTY_POOL)
        if isinstance(share, Unavailable):
            return share

        daily = snapshot.reward_rate_per_second * SECONDS_PER_DAY * share
        if not math.isfinite(daily):
            return Unavailable("reward rate is not finite")

        return RewardEstimate(
            daily=daily,
            monthly=daily * DAYS_PER_MONTH,
            yearly=daily * DAYS_PER_YEAR,
        )

    def daily_reward(self, stake_amount: float, snapshot: PoolStateSnapshot) -> Union[float, Unavailable]:
        """Daily reward only; convenience for projection callers."""
        estimate = self.estimate(stake_amount, snapshot)
        if isinstance(estimate, Unavailable):
            return estimate
        return estimate.daily

    def stake_share(
        self,
        stake_amount: float,
        snapshot: PoolStateSnapshot,
        total_supply: float
    ) -> Union[StakeShare, Unavailable]:
        """
        Compute the stake's percentage of the pool and of total supply.

        Args:
            stake_amount: Amount staked
            snapshot: Current pool snapshot
            total_supply: Total token supply

        Returns:
            StakeShare, or Unavailable when the pool is empty
        """
        pool_share = safe_ratio(stake_amount, snapshot.total_staked, EMPTY_POOL)
        if isinstance(pool_share, Unavailable):
            return pool_share
        supply_share = safe_ratio(stake_amount, total_supply, "total supply is zero")
        if isinstance(supply_share, Unavailable):
            return supply_share
        return StakeShare(
            percentage_of_pool=pool_share * 100,
            percentage_of_supply=supply_share * 100,
        )
