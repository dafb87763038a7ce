"""Export functionality for CSV and JSON."""

import json
from typing import Optional, Sequence

import pandas as pd

from ..engine.projection import ProjectionPoint, projection_frame
from ..engine.records import TransferRecord
from ..feed.memos import clean_memo, transfer_direction


def ledger_frame(records: Sequence[TransferRecord], price: Optional[float] = None) -> pd.DataFrame:
    """Ledger as a DataFrame, newest first, with bridge memo decoding."""
    data = []
    for record in records:
        row = {
            'transaction_id': record.transaction_id,
            'timestamp_utc': record.timestamp_utc,
            'from': record.from_account,
            'to': record.to_account,
            'amount': record.amount,
            'memo': clean_memo(record.memo),
            'direction': transfer_direction(record.memo).value,
        }
        if price is not None:
            row['amount_usd'] = record.amount * price
        data.append(row)

    columns = ['transaction_id', 'timestamp_utc', 'from', 'to', 'amount', 'memo', 'direction']
    if price is not None:
        columns.append('amount_usd')
    return pd.DataFrame(data, columns=columns)


def export_ledger_csv(records: Sequence[TransferRecord], filepath: str, price: Optional[float] = None):
    """Export a ledger to CSV."""
    ledger_frame(records, price).to_csv(filepath, index=False)


def export_projection_csv(points: Sequence[ProjectionPoint], filepath: str):
    """Export projection points to CSV."""
    projection_frame(points).to_csv(filepath)


def export_projection_json(
    points: Sequence[ProjectionPoint],
    filepath: str,
    start_amount: float,
    daily_reward: float
):
    """Export projection points with their inputs to JSON."""
    export_data = {
        'start_amount': start_amount,
        'daily_reward': daily_reward,
        'points': [
            {
                'days_since_start': p.days_since_start,
                'no_compound': p.no_compound,
                'daily_compound': p.daily_compound,
                'monthly_compound': p.monthly_compound,
                'annual_compound': p.annual_compound,
            }
            for p in points
        ],
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)
