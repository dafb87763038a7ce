"""Projection engine - projected balances under four compounding policies.

Formulas, for start amount S and daily reward r at day d:
- none:    S + r * d
- daily:   S * (1 + r / S) ** d
- monthly: S * (1 + 30 * r / S) ** floor(d / 30)
- annual:  S * (1 + 365 * r / S) ** floor(d / 365)

Monthly and annual balances only move on period boundaries. The exponent is
the number of elapsed months/years, which is the dashboard's observed behavior.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Union

import numpy as np
import pandas as pd

from .results import Unavailable

DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365

ZERO_BASE_STAKE = "start amount must be positive to compound"


class CompoundingPolicy(Enum):
    """How often simulated rewards are folded back into principal."""
    NONE = "none"
    DAILY = "daily"
    MONTHLY = "monthly"
    ANNUAL = "annual"


@dataclass(frozen=True)
class ProjectionPoint:
    """Projected balances at one sampled day."""
    days_since_start: int
    no_compound: float
    daily_compound: float
    monthly_compound: float
    annual_compound: float

    def amount(self, policy: CompoundingPolicy) -> float:
        """Balance under a given policy."""
        return {
            CompoundingPolicy.NONE: self.no_compound,
            CompoundingPolicy.DAILY: self.daily_compound,
            CompoundingPolicy.MONTHLY: self.monthly_compound,
            CompoundingPolicy.ANNUAL: self.annual_compound,
        }[policy]


def amount_at(
    policy: CompoundingPolicy,
    start_amount: float,
    daily_reward: float,
    days: Union[int, np.ndarray]
) -> np.ndarray:
    """
    Projected balance under one policy, vectorised over days.

    Args:
        policy: Compounding policy
        start_amount: Balance at day 0 (must be > 0 for compounding policies)
        daily_reward: Reward per day at the start amount
        days: Day index or array of day indices

    Returns:
        Array of balances, one per day
    """
    days = np.asarray(days, dtype=np.int64)

    if policy is CompoundingPolicy.NONE:
        return start_amount + daily_reward * days.astype(float)

    if policy is CompoundingPolicy.DAILY:
        rate, periods = daily_reward / start_amount, days
    elif policy is CompoundingPolicy.MONTHLY:
        rate, periods = daily_reward * DAYS_PER_MONTH / start_amount, days // DAYS_PER_MONTH
    else:
        rate, periods = daily_reward * DAYS_PER_YEAR / start_amount, days // DAYS_PER_YEAR

    return start_amount * np.power(1.0 + rate, periods.astype(float))


def sample_days(horizon_days: int, sampling_interval_days: int) -> np.ndarray:
    """Day 0, every interval, and the horizon itself; never beyond it."""
    if horizon_days < 0:
        raise ValueError(f"horizon_days must be >= 0, got {horizon_days}")
    if sampling_interval_days <= 0:
        raise ValueError(f"sampling_interval_days must be > 0, got {sampling_interval_days}")
    days = np.arange(0, horizon_days + 1, sampling_interval_days, dtype=np.int64)
    if days[-1] != horizon_days:
        days = np.append(days, horizon_days)
    return days


class ProjectionEngine:
    """Finite, restartable projection of balances over a horizon."""

    def project(
        self,
        start_amount: float,
        daily_reward: float,
        horizon_days: int,
        sampling_interval_days: int
    ) -> Union[List[ProjectionPoint], Unavailable]:
        """
        Project balances over [0, horizon_days].

        Args:
            start_amount: Current stake
            daily_reward: Reward per day at the current stake
            horizon_days: Last day of the projection
            sampling_interval_days: Distance between samples

        Returns:
            ProjectionPoints in ascending day order, or Unavailable for a
            non-positive start amount
        """
        if start_amount <= 0:
            return Unavailable(ZERO_BASE_STAKE)

        days = sample_days(horizon_days, sampling_interval_days)
        series = {
            policy: amount_at(policy, start_amount, daily_reward, days)
            for policy in CompoundingPolicy
        }

        return [
            ProjectionPoint(
                days_since_start=int(day),
                no_compound=float(series[CompoundingPolicy.NONE][i]),
                daily_compound=float(series[CompoundingPolicy.DAILY][i]),
                monthly_compound=float(series[CompoundingPolicy.MONTHLY][i]),
                annual_compound=float(series[CompoundingPolicy.ANNUAL][i]),
            )
            for i, day in enumerate(days)
        ]


def projection_frame(points: Sequence[ProjectionPoint]) -> pd.DataFrame:
    """Projection as a DataFrame indexed by day."""
    df = pd.DataFrame([
        {
            'days_since_start': p.days_since_start,
            'no_compound': p.no_compound,
            'daily_compound': p.daily_compound,
            'monthly_compound': p.monthly_compound,
            'annual_compound': p.annual_compound,
        }
        for p in points
    ], columns=['days_since_start', 'no_compound', 'daily_compound', 'monthly_compound', 'annual_compound'])
    return df.set_index('days_since_start')
