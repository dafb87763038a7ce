"""Transfer records and their parsing from raw history actions."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from ..errors import FeedParseError, MalformedTimestamp
from .pool_state import parse_asset

logger = logging.getLogger(__name__)

# fromisoformat on older interpreters only takes 3 or 6 fractional digits
_FRACTION = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class TransferRecord:
    """One token transfer from the action feed. Identity is transaction_id."""
    transaction_id: str
    timestamp_utc: datetime
    from_account: str
    to_account: str
    amount: float
    memo: str


def parse_timestamp(raw: Any) -> datetime:
    """
    Parse a feed timestamp into an aware UTC datetime.

    History API timestamps carry no zone designator and are UTC.

    Args:
        raw: Timestamp string such as "2024-05-01T12:34:56.500"

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"not a timestamp: {raw!r}")
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def record_from_action(action: Dict[str, Any]) -> TransferRecord:
    """
    Convert one raw history action into a TransferRecord.

    Raises:
        MalformedTimestamp: If the timestamp cannot be parsed
        FeedParseError: If required fields are missing
    """
    try:
        transaction_id = action["trx_id"]
        data = action["act"]["data"]
        raw_timestamp = action["timestamp"]
    except (KeyError, TypeError):
        raise FeedParseError(f"Action missing trx_id/act.data/timestamp: {action!r}") from None
    if not isinstance(data, dict):
        raise FeedParseError(f"Action {transaction_id} has no transfer data")

    try:
        timestamp = parse_timestamp(raw_timestamp)
    except ValueError:
        raise MalformedTimestamp(transaction_id, raw_timestamp) from None

    return TransferRecord(
        transaction_id=transaction_id,
        timestamp_utc=timestamp,
        from_account=data.get("from", ""),
        to_account=data.get("to", ""),
        amount=parse_asset(data.get("quantity", "")),
        memo=data.get("memo", "") or "",
    )


def records_from_actions(actions: Iterable[Dict[str, Any]]) -> List[TransferRecord]:
    """
    Convert a page of raw actions, dropping the ones that cannot be parsed.

    A bad record never aborts the page; it is logged and skipped.
    """
    records = []
    for action in actions:
        try:
            records.append(record_from_action(action))
        except MalformedTimestamp as exc:
            logger.warning("Dropping action %s: %s", exc.transaction_id, exc)
        except FeedParseError as exc:
            logger.warning("Dropping unparseable action: %s", exc)
    return records
