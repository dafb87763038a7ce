"""Bridge memo classification."""

import re
from enum import Enum

OUTBOUND_PREFIX = "STRX-SPL@"
INBOUND_MARKER = "Cross-chain wrap from Solana"
FEE_MARKER = "Cross-chain wrap fee"

_INBOUND_ADDRESS = re.compile(r"Cross-chain wrap from Solana \((.*?)\)")


class TransferDirection(Enum):
    """Direction of a bridge transfer."""
    OUTBOUND = "outbound"  # XPR -> Solana
    INBOUND = "inbound"    # Solana -> XPR
    OTHER = "other"


def clean_memo(memo: str) -> str:
    """Reduce a bridge memo to the Solana address it names, if any."""
    if memo.startswith(OUTBOUND_PREFIX):
        return memo[len(OUTBOUND_PREFIX):]
    match = _INBOUND_ADDRESS.search(memo)
    if match:
        return match.group(1)
    return memo


def transfer_direction(memo: str) -> TransferDirection:
    if memo.startswith(OUTBOUND_PREFIX):
        return TransferDirection.OUTBOUND
    if INBOUND_MARKER in memo:
        return TransferDirection.INBOUND
    return TransferDirection.OTHER


def is_fee_memo(memo: str, marker: str = FEE_MARKER) -> bool:
    return marker in memo
