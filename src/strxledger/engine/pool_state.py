"""Pool state snapshot - global staking parameters at a point in time."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..errors import FeedParseError

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


def parse_asset(text: str) -> float:
    """
    Parse an on-chain asset string.

    Args:
        text: Asset like "1234.5678 STRX"

    Returns:
        The numeric amount

    Raises:
        FeedParseError: If the amount is missing or not a number
    """
    if not isinstance(text, str) or not text.strip():
        raise FeedParseError(f"Empty asset string: {text!r}")
    amount = text.strip().split(" ")[0]
    try:
        return float(amount)
    except ValueError:
        raise FeedParseError(f"Unparseable asset string: {text!r}") from None


@dataclass(frozen=True)
class PoolStateSnapshot:
    """Global staking parameters captured together.

    Never updated field by field; a refresh produces a new snapshot that
    replaces the previous one wholesale.
    """
    total_staked: float
    reward_rate_per_second: float
    captured_at: datetime

    @property
    def daily_emission(self) -> float:
        """Rewards distributed to the whole pool per day."""
        return self.reward_rate_per_second * SECONDS_PER_DAY

    @classmethod
    def from_config_row(cls, row: Dict[str, Any], captured_at: Optional[datetime] = None) -> 'PoolStateSnapshot':
        """
        Build a snapshot from the staking contract's config table row.

        Args:
            row: Row with "stakes" and "rewards_sec" asset strings
            captured_at: Capture time (defaults to now, UTC)

        Returns:
            PoolStateSnapshot

        Raises:
            FeedParseError: If a required field is missing or malformed
        """
        try:
            stakes = row["stakes"]
            rewards_sec = row["rewards_sec"]
        except (KeyError, TypeError):
            raise FeedParseError(f"Config row missing stakes/rewards_sec: {row!r}") from None

        return cls(
            total_staked=parse_asset(stakes),
            reward_rate_per_second=parse_asset(rewards_sec),
            captured_at=captured_at or datetime.now(timezone.utc),
        )


class SnapshotHolder:
    """Single reference to the latest snapshot.

    Readers take `current` and work with that object; writers swap the
    reference. Snapshots are immutable so no locking is needed.
    """

    def __init__(self, initial: Optional[PoolStateSnapshot] = None):
        self._current = initial
        self.last_refreshed: Optional[datetime] = initial.captured_at if initial else None

    @property
    def current(self) -> Optional[PoolStateSnapshot]:
        """Latest accepted snapshot, or None before the first refresh."""
        return self._current

    def replace(self, snapshot: PoolStateSnapshot) -> bool:
        """
        Swap in a new snapshot.

        Args:
            snapshot: Freshly fetched snapshot

        Returns:
            True if accepted, False if it is older than the held one
        """
        held = self._current
        if held is not None and snapshot.captured_at < held.captured_at:
            logger.debug(
                "Discarding stale pool snapshot captured %s (holding %s)",
                snapshot.captured_at.isoformat(), held.captured_at.isoformat()
            )
            return False
        self._current = snapshot
        self.last_refreshed = snapshot.captured_at
        return True
