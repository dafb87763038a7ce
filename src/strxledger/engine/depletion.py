"""Pool depletion estimator - days until the rewards pool runs dry."""

from typing import Union

from .pool_state import SECONDS_PER_DAY
from .results import Indeterminate

DEPLETION_CEILING_DAYS = 3650


class PoolDepletionEstimator:
    """Day-by-day drawdown of a finite rewards reserve.

    Rewards paid out each day re-enter the staked base, so the payout grows
    over time: daily = rate * 86400 * (current_staked / total_staked).
    """

    def __init__(self, ceiling_days: int = DEPLETION_CEILING_DAYS):
        self.ceiling_days = ceiling_days

    def days_until_empty(
        self,
        pool_balance: float,
        total_staked: float,
        reward_rate_per_second: float
    ) -> Union[int, Indeterminate]:
        """
        Simulate pool drawdown.

        Args:
            pool_balance: Current rewards pool balance
            total_staked: Total stake at the start
            reward_rate_per_second: Pool-wide emission rate

        Returns:
            Days until the balance reaches zero, the ceiling if it never does
            within it, or Indeterminate when nothing is staked
        """
        if total_staked <= 0:
            return Indeterminate("pool has no stake")

        balance = pool_balance
        current_staked = total_staked
        day = 0
        while balance > 0 and day < self.ceiling_days:
            daily_rewards = reward_rate_per_second * SECONDS_PER_DAY * (current_staked / total_staked)
            balance -= daily_rewards
            current_staked += daily_rewards
            day += 1
        return day

    def is_effectively_indefinite(self, days: Union[int, Indeterminate]) -> bool:
        """True when the estimate hit the ceiling and should read as 'indefinite'."""
        return isinstance(days, int) and days >= self.ceiling_days
