"""Tier analysis - when does a stake cross into the next tier.

Key Concepts:
- Tiers are static thresholds, strictly decreasing by rank, ending at zero
- Days-to-tier is found by day-by-day simulation rather than closed-form
  inversion, because monthly and annual balances are step functions
- The simulation stops at a fixed ceiling (5 years by default)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .projection import CompoundingPolicy, ZERO_BASE_STAKE, amount_at
from .results import Unavailable, Unreachable

TIER_CEILING_DAYS = 1825

DaysResult = Union[int, Unreachable, Unavailable]


@dataclass(frozen=True)
class StakingTier:
    """Stake threshold bracket. Rank 1 is the highest tier."""
    name: str
    minimum_stake: float
    rank: int
    emoji: str = ""


def build_tiers(rows: Sequence) -> List[StakingTier]:
    """
    Build ranked tiers from (name, minimum, emoji) rows or config Tier models.

    Raises:
        ValueError: If minimums are not strictly decreasing or the last tier is not zero
    """
    tiers = []
    for rank, row in enumerate(rows, start=1):
        if isinstance(row, (tuple, list)):
            name, minimum, emoji = (tuple(row) + ("",))[:3]
        else:
            name, minimum, emoji = row.name, row.minimum, row.emoji
        tiers.append(StakingTier(name=name, minimum_stake=float(minimum), rank=rank, emoji=emoji))

    for higher, lower in zip(tiers, tiers[1:]):
        if lower.minimum_stake >= higher.minimum_stake:
            raise ValueError(f"Tier {lower.name} must have a lower minimum than {higher.name}")
    if not tiers or tiers[-1].minimum_stake != 0:
        raise ValueError("Tier table must end with a zero-stake tier")
    return tiers


DEFAULT_TIERS = build_tiers([
    ("Whale", 20_000_000, "🐋"),
    ("Shark", 10_000_000, "🦈"),
    ("Dolphin", 5_000_000, "🐬"),
    ("Fish", 1_000_000, "🐟"),
    ("Shrimp", 500_000, "🦐"),
    ("Free", 0, "🆓"),
])


def tier_for(amount: float, tiers: Sequence[StakingTier] = DEFAULT_TIERS) -> StakingTier:
    """Highest tier whose minimum the amount meets."""
    for tier in tiers:
        if amount >= tier.minimum_stake:
            return tier
    return tiers[-1]


def next_tier(amount: float, tiers: Sequence[StakingTier] = DEFAULT_TIERS) -> Optional[StakingTier]:
    """The tier directly above the amount's tier, or None at the top."""
    current = tier_for(amount, tiers)
    higher = [t for t in tiers if t.rank < current.rank]
    return higher[-1] if higher else None


@dataclass
class PolicyComparison:
    """Days-to-tier for current vs hypothetical stake under one policy."""
    current_days: DaysResult
    hypothetical_days: DaysResult
    # current_days - hypothetical_days; positive means the hypothetical is faster.
    # None when either side has no numeric answer.
    difference: Optional[int]


@dataclass
class ComparisonReport:
    """Comparison of two stake levels against the next tier."""
    current_amount: float
    hypothetical_amount: float
    next_tier_minimum: Optional[float]
    by_policy: Dict[CompoundingPolicy, PolicyComparison] = field(default_factory=dict)

    @property
    def no_next_tier(self) -> bool:
        return self.next_tier_minimum is None


class TierAnalyzer:
    """Forecast tier progression under each compounding policy."""

    def __init__(self, tiers: Sequence[StakingTier] = DEFAULT_TIERS, ceiling_days: int = TIER_CEILING_DAYS):
        """
        Initialize tier analyzer.

        Args:
            tiers: Ranked tier table
            ceiling_days: Last day simulated before giving up
        """
        self.tiers = list(tiers)
        self.ceiling_days = ceiling_days

    def days_to_reach(
        self,
        start_amount: float,
        daily_reward: float,
        target_amount: float,
        policy: CompoundingPolicy
    ) -> DaysResult:
        """
        First day on which the projected balance is at least the target.

        Args:
            start_amount: Balance at day 0
            daily_reward: Reward per day at the start amount
            target_amount: Balance to reach
            policy: Compounding policy

        Returns:
            Day index, Unreachable past the ceiling, or Unavailable when a
            compounding policy has no base stake to compound
        """
        if start_amount >= target_amount:
            return 0
        if daily_reward <= 0:
            return Unreachable(self.ceiling_days)
        if start_amount <= 0 and policy is not CompoundingPolicy.NONE:
            return Unavailable(ZERO_BASE_STAKE)

        days = np.arange(1, self.ceiling_days + 1)
        with np.errstate(over="ignore"):
            balances = amount_at(policy, start_amount, daily_reward, days)
        reached = np.nonzero(balances >= target_amount)[0]
        if reached.size == 0:
            return Unreachable(self.ceiling_days)
        return int(days[reached[0]])

    def compare(
        self,
        current_amount: float,
        hypothetical_amount: float,
        daily_reward_at_current: float,
        next_tier_minimum: Optional[float]
    ) -> ComparisonReport:
        """
        Compare days-to-next-tier for the current and a hypothetical stake.

        The hypothetical daily reward is the current one scaled pro-rata by
        stake, since rewards are proportional to the amount staked.

        Args:
            current_amount: Current stake
            hypothetical_amount: Stake to compare against
            daily_reward_at_current: Daily reward earned by the current stake
            next_tier_minimum: Threshold of the next tier, None at the top tier

        Returns:
            ComparisonReport with one entry per policy (empty when there is
            no next tier)
        """
        report = ComparisonReport(
            current_amount=current_amount,
            hypothetical_amount=hypothetical_amount,
            next_tier_minimum=next_tier_minimum,
        )
        if next_tier_minimum is None:
            return report

        if current_amount > 0:
            hypothetical_reward = daily_reward_at_current * hypothetical_amount / current_amount
        else:
            hypothetical_reward = 0.0

        for policy in CompoundingPolicy:
            current_days = self.days_to_reach(
                current_amount, daily_reward_at_current, next_tier_minimum, policy
            )
            hypothetical_days = self.days_to_reach(
                hypothetical_amount, hypothetical_reward, next_tier_minimum, policy
            )

            difference = None
            if isinstance(current_days, int) and isinstance(hypothetical_days, int):
                difference = current_days - hypothetical_days

            report.by_policy[policy] = PolicyComparison(
                current_days=current_days,
                hypothetical_days=hypothetical_days,
                difference=difference,
            )
        return report

    def compare_to_next_tier(
        self,
        current_amount: float,
        hypothetical_amount: float,
        daily_reward_at_current: float
    ) -> ComparisonReport:
        """compare() against the tier above the current amount."""
        upcoming = next_tier(current_amount, self.tiers)
        return self.compare(
            current_amount,
            hypothetical_amount,
            daily_reward_at_current,
            upcoming.minimum_stake if upcoming else None,
        )

    def progression(
        self,
        amount: float,
        daily_reward: float,
        policy: CompoundingPolicy
    ) -> Dict[str, DaysResult]:
        """Days to reach every tier above the amount's current tier, nearest first."""
        current = tier_for(amount, self.tiers)
        higher = sorted((t for t in self.tiers if t.rank < current.rank), key=lambda t: t.minimum_stake)
        return {
            tier.name: self.days_to_reach(amount, daily_reward, tier.minimum_stake, policy)
            for tier in higher
        }
