"""Staking session - wires the feed, refresh jobs and analytics together.

A session owns one snapshot holder, one rewards-balance value and any number
of ledgers. Every analytic reads the snapshot reference once and works from
that immutable object, so a refresh landing mid-computation cannot mix two
snapshots.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .config.schema import Config
from .engine.depletion import PoolDepletionEstimator
from .engine.ledger import LedgerAccumulator
from .engine.pool_state import PoolStateSnapshot, SnapshotHolder
from .engine.projection import CompoundingPolicy, ProjectionEngine, ProjectionPoint
from .engine.results import Indeterminate, Unavailable, Unreachable
from .engine.rewards import RewardEstimate, RewardRateModel, StakeShare
from .engine.tiers import ComparisonReport, StakingTier, TierAnalyzer, build_tiers, next_tier, tier_for
from .feed.client import ActionFeedClient
from .refresh.scheduler import RefreshScheduler
from .views import bridge_ledger, user_bridge_ledger, user_staking_ledger

NO_SNAPSHOT = "pool state not loaded yet"
REWARDS_BALANCE_JOB = "rewards_balance"
PRICE_JOB = "price"
POOL_STATE_JOB = "pool_state"


@dataclass
class StakingSummary:
    """Everything the dashboard shows for one stake amount."""
    stake: float
    tier: StakingTier
    next_tier: Optional[StakingTier]
    rewards: Union[RewardEstimate, Unavailable]
    share: Union[StakeShare, Unavailable]
    projection: Union[List[ProjectionPoint], Unavailable]
    days_to_next_tier: Dict[CompoundingPolicy, Union[int, Unreachable, Unavailable]] = field(default_factory=dict)
    price: Optional[float] = None
    rewards_usd: Optional[RewardEstimate] = None


class StakingSession:
    """Analytics over live pool state and ledgers for one dashboard session."""

    def __init__(self, config: Config, client: Optional[ActionFeedClient] = None):
        """
        Initialize session.

        Args:
            config: Engine configuration
            client: Feed client; None for offline use (snapshots set by hand)
        """
        self.config = config
        self.client = client

        self.snapshots = SnapshotHolder()
        self.rewards_model = RewardRateModel()
        self.projection = ProjectionEngine()
        self.tiers = build_tiers(config.tiers)
        self.tier_analyzer = TierAnalyzer(self.tiers, ceiling_days=config.projection.tier_ceiling_days)
        self.depletion = PoolDepletionEstimator(ceiling_days=config.projection.depletion_ceiling_days)
        self.scheduler = RefreshScheduler(failure_window=config.refresh.failure_window)

        self.ledgers: Dict[str, LedgerAccumulator] = {}

        if client is not None:
            self.scheduler.add_snapshot_job(
                POOL_STATE_JOB, config.refresh.pool_state_interval, client.fetch_pool_state, self.snapshots
            )
            self.scheduler.add_job(
                REWARDS_BALANCE_JOB, config.refresh.rewards_balance_interval, client.fetch_rewards_pool_balance
            )
            self.scheduler.add_job(PRICE_JOB, config.refresh.price_interval, client.fetch_price)

    # =========================================================================
    # Ledgers
    # =========================================================================

    def open_bridge_ledger(self) -> LedgerAccumulator:
        return self._register("bridge", bridge_ledger(self.client, self.config), self.config.refresh.ledger_interval)

    def open_user_bridge_ledger(self, account: str) -> LedgerAccumulator:
        return self._register(
            f"bridge:{account}",
            user_bridge_ledger(self.client, account, self.config),
            self.config.refresh.ledger_interval,
        )

    def open_user_staking_ledger(self, account: str) -> LedgerAccumulator:
        return self._register(
            f"staking:{account}",
            user_staking_ledger(self.client, account, self.config),
            self.config.refresh.user_actions_interval,
        )

    def _register(self, name: str, ledger: LedgerAccumulator, interval: float) -> LedgerAccumulator:
        if name in self.ledgers:
            return self.ledgers[name]
        self.ledgers[name] = ledger
        if self.client is not None:
            self.scheduler.add_ledger_job(name, interval, ledger)
        return ledger

    # =========================================================================
    # Analytics
    # =========================================================================

    @property
    def rewards_pool_balance(self) -> Optional[float]:
        return self.scheduler.latest.get(REWARDS_BALANCE_JOB)

    @property
    def price(self) -> Optional[float]:
        """Latest oracle token price, None until the first successful poll."""
        return self.scheduler.latest.get(PRICE_JOB)

    def summarize(
        self,
        stake: float,
        snapshot: Optional[PoolStateSnapshot] = None,
        price: Optional[float] = None
    ) -> StakingSummary:
        """
        Rewards, share, projection and tier forecast for one stake.

        Args:
            stake: Amount staked
            snapshot: Pool snapshot to use (defaults to the held one)
            price: Token price for USD values (defaults to the latest oracle price)

        Returns:
            StakingSummary; fields depending on the pool are Unavailable
            until a snapshot exists or when the pool is empty
        """
        snapshot = snapshot or self.snapshots.current
        price = price if price is not None else self.price
        tier = tier_for(stake, self.tiers)
        upcoming = next_tier(stake, self.tiers)

        if snapshot is None:
            missing = Unavailable(NO_SNAPSHOT)
            return StakingSummary(
                stake=stake, tier=tier, next_tier=upcoming,
                rewards=missing, share=missing, projection=missing, price=price,
            )

        rewards = self.rewards_model.estimate(stake, snapshot)
        share = self.rewards_model.stake_share(stake, snapshot, self.config.token.total_supply)
        summary = StakingSummary(
            stake=stake, tier=tier, next_tier=upcoming,
            rewards=rewards, share=share, projection=rewards, price=price,
        )
        if isinstance(rewards, Unavailable):
            return summary

        if price is not None:
            summary.rewards_usd = rewards.in_usd(price)

        summary.projection = self.projection.project(
            stake,
            rewards.daily,
            self.config.projection.horizon_days,
            self.config.projection.sampling_interval_days,
        )
        if upcoming is not None:
            summary.days_to_next_tier = {
                policy: self.tier_analyzer.days_to_reach(stake, rewards.daily, upcoming.minimum_stake, policy)
                for policy in CompoundingPolicy
            }
        return summary

    def compare_stakes(
        self,
        current: float,
        hypothetical: float,
        snapshot: Optional[PoolStateSnapshot] = None
    ) -> Union[ComparisonReport, Unavailable]:
        """Days-to-next-tier for the current stake versus a hypothetical one."""
        snapshot = snapshot or self.snapshots.current
        if snapshot is None:
            return Unavailable(NO_SNAPSHOT)
        daily = self.rewards_model.daily_reward(current, snapshot)
        if isinstance(daily, Unavailable):
            return daily
        return self.tier_analyzer.compare_to_next_tier(current, hypothetical, daily)

    def pool_runway(
        self,
        snapshot: Optional[PoolStateSnapshot] = None,
        pool_balance: Optional[float] = None
    ) -> Union[int, Indeterminate, Unavailable]:
        """Days until the rewards pool is empty at current emission."""
        snapshot = snapshot or self.snapshots.current
        balance = pool_balance if pool_balance is not None else self.rewards_pool_balance
        if snapshot is None:
            return Unavailable(NO_SNAPSHOT)
        if balance is None:
            return Unavailable("rewards pool balance not loaded yet")
        return self.depletion.days_until_empty(balance, snapshot.total_staked, snapshot.reward_rate_per_second)
