"""Tests for pool snapshots, reward estimates and pool depletion."""

import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from strxledger.engine.depletion import PoolDepletionEstimator
from strxledger.engine.pool_state import PoolStateSnapshot, SnapshotHolder, parse_asset
from strxledger.engine.results import (
    Indeterminate, Unavailable, Unreachable, format_amount, is_available, safe_ratio
)
from strxledger.engine.rewards import RewardRateModel
from strxledger.errors import FeedParseError


CAPTURED = datetime(2024, 5, 1, tzinfo=timezone.utc)


def snapshot(total_staked, rate, captured_at=CAPTURED):
    return PoolStateSnapshot(total_staked=total_staked, reward_rate_per_second=rate, captured_at=captured_at)


class TestPoolState:
    """Snapshot parsing and replacement."""

    def test_parse_asset(self):
        assert parse_asset("1234.5678 STRX") == pytest.approx(1234.5678)
        assert parse_asset("  0.0000 STRX ") == 0.0

    def test_parse_asset_rejects_garbage(self):
        with pytest.raises(FeedParseError):
            parse_asset("")
        with pytest.raises(FeedParseError):
            parse_asset("lots STRX")

    def test_from_config_row(self):
        snap = PoolStateSnapshot.from_config_row(
            {"stakes": "500000000.0000 STRX", "rewards_sec": "3.1710 STRX"}, captured_at=CAPTURED
        )
        assert snap.total_staked == 500_000_000
        assert snap.reward_rate_per_second == pytest.approx(3.171)
        assert snap.daily_emission == pytest.approx(3.171 * 86400)

    def test_from_config_row_missing_field(self):
        with pytest.raises(FeedParseError):
            PoolStateSnapshot.from_config_row({"stakes": "1.0000 STRX"})

    def test_holder_replaces_wholesale(self):
        holder = SnapshotHolder()
        assert holder.current is None

        first = snapshot(1_000, 1.0)
        second = snapshot(2_000, 2.0, CAPTURED + timedelta(minutes=1))
        assert holder.replace(first)
        assert holder.replace(second)
        assert holder.current is second
        assert holder.last_refreshed == second.captured_at

    def test_holder_rejects_older_snapshot(self):
        newer = snapshot(2_000, 2.0, CAPTURED + timedelta(minutes=1))
        holder = SnapshotHolder(newer)
        assert not holder.replace(snapshot(1_000, 1.0))
        assert holder.current is newer


class TestRewardRateModel:
    """Pro-rata reward estimates."""

    def test_estimate(self):
        rewards = RewardRateModel().estimate(100_000, snapshot(1_000_000, 1.0))

        assert rewards.daily == pytest.approx(8_640)
        assert rewards.monthly == pytest.approx(8_640 * 30)
        assert rewards.yearly == pytest.approx(8_640 * 365)

    def test_estimate_proportional_to_stake(self):
        model = RewardRateModel()
        snap = snapshot(10_000_000, 2.5)
        small = model.daily_reward(1_000, snap)
        large = model.daily_reward(3_000, snap)
        assert large == pytest.approx(3 * small)

    def test_empty_pool_unavailable(self):
        model = RewardRateModel()
        empty = snapshot(0, 1.0)
        assert isinstance(model.estimate(100, empty), Unavailable)
        assert isinstance(model.daily_reward(100, empty), Unavailable)
        assert isinstance(model.stake_share(100, empty, 2_000_000_000), Unavailable)

    def test_zero_stake_earns_nothing(self):
        rewards = RewardRateModel().estimate(0, snapshot(1_000_000, 1.0))
        assert rewards.daily == 0

    def test_in_usd(self):
        rewards = RewardRateModel().estimate(100_000, snapshot(1_000_000, 1.0)).in_usd(0.5)
        assert rewards.daily == pytest.approx(4_320)
        assert rewards.yearly == pytest.approx(4_320 * 365)

    def test_stake_share(self):
        share = RewardRateModel().stake_share(1_000_000, snapshot(100_000_000, 1.0), 2_000_000_000)
        assert share.percentage_of_pool == pytest.approx(1.0)
        assert share.percentage_of_supply == pytest.approx(0.05)


class TestPoolDepletion:
    """Day-by-day rewards pool drawdown."""

    def test_empty_pool_is_zero_days(self):
        assert PoolDepletionEstimator().days_until_empty(0, 1_000_000, 1.0) == 0

    def test_no_stake_indeterminate(self):
        assert isinstance(PoolDepletionEstimator().days_until_empty(1_000, 0, 1.0), Indeterminate)

    def test_payout_grows_with_restaked_rewards(self):
        """100/day on day one, 100.01 on day two, pool of 250 lasts three days."""
        rate = 100 / 86400
        assert PoolDepletionEstimator().days_until_empty(250, 1_000_000, rate) == 3

    def test_growth_shortens_runway(self):
        rate = 100 / 86400
        assert PoolDepletionEstimator().days_until_empty(1_000, 1_000_000, rate) == 10

    def test_no_emission_hits_ceiling(self):
        estimator = PoolDepletionEstimator(ceiling_days=365)
        days = estimator.days_until_empty(1_000, 1_000_000, 0.0)
        assert days == 365
        assert estimator.is_effectively_indefinite(days)

    def test_finite_runway_not_indefinite(self):
        estimator = PoolDepletionEstimator()
        assert not estimator.is_effectively_indefinite(3)
        assert not estimator.is_effectively_indefinite(Indeterminate("pool has no stake"))


class TestResults:
    """Sentinel helpers."""

    def test_safe_ratio(self):
        assert safe_ratio(1, 4, "x") == 0.25
        assert safe_ratio(1, 0, "empty") == Unavailable("empty")
        assert safe_ratio(float("inf"), 1, "inf") == Unavailable("inf")

    def test_is_available(self):
        assert is_available(0)
        assert not is_available(Unavailable("x"))
        assert not is_available(Unreachable(10))
        assert not is_available(Indeterminate("x"))

    def test_format_amount(self):
        assert format_amount(1234.5) == "1,234.5000"
        assert format_amount(1234.4, decimals=0) == "1,234"
        assert format_amount(Unavailable("x")) == "N/A"
        assert format_amount(None) == "N/A"
