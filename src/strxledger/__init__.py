"""STRX staking ledger accumulation and rewards projection engine."""

__version__ = "1.0.0"
