"""Ledger accumulation and rewards projection engine."""

from .depletion import DEPLETION_CEILING_DAYS, PoolDepletionEstimator
from .ledger import FetchResult, LedgerAccumulator, PaginationCursor
from .pool_state import PoolStateSnapshot, SnapshotHolder, parse_asset
from .projection import CompoundingPolicy, ProjectionEngine, ProjectionPoint, projection_frame
from .records import TransferRecord, record_from_action, records_from_actions
from .results import Indeterminate, Unavailable, Unreachable, format_amount, is_available
from .rewards import RewardEstimate, RewardRateModel, StakeShare
from .tiers import (
    DEFAULT_TIERS,
    ComparisonReport,
    PolicyComparison,
    StakingTier,
    TierAnalyzer,
    build_tiers,
    next_tier,
    tier_for,
)

__all__ = [
    # Pool state
    "PoolStateSnapshot",
    "SnapshotHolder",
    "parse_asset",
    # Rewards
    "RewardEstimate",
    "RewardRateModel",
    "StakeShare",
    # Ledger
    "TransferRecord",
    "record_from_action",
    "records_from_actions",
    "FetchResult",
    "LedgerAccumulator",
    "PaginationCursor",
    # Projection
    "CompoundingPolicy",
    "ProjectionEngine",
    "ProjectionPoint",
    "projection_frame",
    # Tiers
    "DEFAULT_TIERS",
    "StakingTier",
    "TierAnalyzer",
    "ComparisonReport",
    "PolicyComparison",
    "build_tiers",
    "next_tier",
    "tier_for",
    # Depletion
    "DEPLETION_CEILING_DAYS",
    "PoolDepletionEstimator",
    # Results
    "Unavailable",
    "Unreachable",
    "Indeterminate",
    "format_amount",
    "is_available",
]
