"""Typed outcomes for computations that may have no meaningful answer.

Division by a zero pool or a zero base stake never produces NaN or infinity.
Those computations return one of the sentinels below instead, so consumers
can render "N/A" deterministically.
"""

import math
from dataclasses import dataclass
from typing import Any

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Unavailable:
    """The ratio a result depends on is undefined (e.g. empty pool)."""
    reason: str


@dataclass(frozen=True)
class Unreachable:
    """A target is not reached within the simulation ceiling."""
    ceiling_days: int


@dataclass(frozen=True)
class Indeterminate:
    """A simulation cannot start because its inputs are degenerate."""
    reason: str


def is_available(value: Any) -> bool:
    """True when value is a real answer rather than one of the sentinels."""
    return not isinstance(value, (Unavailable, Unreachable, Indeterminate))


def safe_ratio(numerator: float, denominator: float, reason: str):
    """Divide, returning Unavailable for a zero denominator or non-finite result."""
    if denominator == 0:
        return Unavailable(reason)
    value = numerator / denominator
    if not math.isfinite(value):
        return Unavailable(reason)
    return value


def format_amount(value: Any, decimals: int = 4) -> str:
    """Format a numeric result, rendering sentinels as N/A."""
    if not is_available(value) or value is None:
        return NOT_AVAILABLE
    return f"{value:,.{decimals}f}"
