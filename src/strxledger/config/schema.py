"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator


class Feed(BaseModel):
    """History API endpoint and account settings."""
    endpoint: str = Field(description="Base URL of the chain/history API")
    token_contract: str = Field(description="Token contract emitting transfers")
    staking_contract: str = Field(description="Staking contract holding the config table")
    bridge_account: str = Field(description="Bridge account whose transfers are tracked")
    rewards_account: str = Field(description="Account holding the rewards pool balance")
    oracle_contract: str = Field(default="strxoracle", description="Oracle contract holding the prices table")
    price_symbol: str = Field(default="4,STRX", description="Oracle row key (precision,symbol) of the token price")
    symbol: str = Field(description="Token symbol")
    action_filter: str = Field(default="transfer", description="Action name filter")
    request_timeout: float = Field(gt=0, default=15.0, description="HTTP timeout in seconds")

    @field_validator("endpoint")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalise the endpoint so paths can be appended."""
        return v.rstrip("/")


class Pagination(BaseModel):
    """Page sizes per call site."""
    bridge_page_size: int = Field(gt=0, description="Page size for bridge account feed")
    user_page_size: int = Field(gt=0, description="Page size for per-user staking feed")


class Memos(BaseModel):
    """Memo markers used by relevance filters."""
    fee_marker: str = Field(description="Substring marking bridge fee transfers")
    staking_memos: List[str] = Field(min_length=1, description="Memos of staking actions")


class Refresh(BaseModel):
    """Refresh cadence per data class, in seconds."""
    ledger_interval: float = Field(gt=0, description="Bridge ledger page re-fetch")
    user_actions_interval: float = Field(gt=0, description="User action page re-fetch")
    pool_state_interval: float = Field(gt=0, description="Pool snapshot reload")
    rewards_balance_interval: float = Field(gt=0, description="Rewards pool balance reload")
    price_interval: float = Field(gt=0, default=120.0, description="Token price reload")
    failure_window: int = Field(ge=1, default=3, description="Consecutive failures before a job is degraded")


class Projection(BaseModel):
    """Projection and forecast horizons."""
    horizon_days: int = Field(gt=0, description="Projection horizon")
    sampling_interval_days: int = Field(gt=0, description="Sampling interval for projections")
    tier_ceiling_days: int = Field(gt=0, description="Simulation ceiling for tier forecasts")
    depletion_ceiling_days: int = Field(gt=0, description="Simulation ceiling for pool depletion")

    @model_validator(mode="after")
    def validate_sampling(self):
        """Sampling interval cannot exceed the horizon."""
        if self.sampling_interval_days > self.horizon_days:
            raise ValueError(
                f"sampling_interval_days ({self.sampling_interval_days}) must not exceed "
                f"horizon_days ({self.horizon_days})"
            )
        return self


class Tier(BaseModel):
    """Stake threshold bracket."""
    name: str
    minimum: float = Field(ge=0, description="Minimum stake for this tier")
    emoji: str = ""


class Token(BaseModel):
    """Token supply parameters."""
    total_supply: float = Field(gt=0, description="Total token supply")


class Config(BaseModel):
    """Complete configuration for the ledger and projection engine."""
    feed: Feed
    pagination: Pagination
    memos: Memos
    refresh: Refresh
    projection: Projection
    token: Token
    tiers: List[Tier] = Field(min_length=1)

    @field_validator("tiers")
    @classmethod
    def validate_tiers(cls, v):
        """Tiers must be strictly decreasing and end at the zero-stake tier."""
        for higher, lower in zip(v, v[1:]):
            if lower.minimum >= higher.minimum:
                raise ValueError(
                    f"Tier minimums must be strictly decreasing: "
                    f"{higher.name}={higher.minimum:,.0f}, {lower.name}={lower.minimum:,.0f}"
                )
        if v[-1].minimum != 0:
            raise ValueError(f"Last tier must have a zero minimum, got {v[-1].name}={v[-1].minimum:,.0f}")
        return v

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
