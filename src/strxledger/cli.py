"""Command line entry point.

    strxledger summary --stake 1500000 [--hypothetical 2000000] [--usd]
    strxledger ledger [--account NAME] [--pages 3] [--csv out.csv] [--usd]
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config.loader import load_config
from .engine.projection import CompoundingPolicy
from .engine.results import format_amount, is_available
from .feed.client import ActionFeedClient
from .reporting.export import export_ledger_csv
from .session import StakingSession


def _format_days(value) -> str:
    return f"{value} days" if is_available(value) else "N/A"


async def _summary(args, config) -> int:
    async with ActionFeedClient(config) as client:
        session = StakingSession(config, client)
        await session.scheduler.run_once()

    summary = session.summarize(args.stake)
    print(f"Tier: {summary.tier.emoji} {summary.tier.name}")
    if is_available(summary.rewards):
        print(f"Daily:   {format_amount(summary.rewards.daily)}")
        print(f"Monthly: {format_amount(summary.rewards.monthly)}")
        print(f"Yearly:  {format_amount(summary.rewards.yearly)}")
    else:
        print("Rewards: N/A")
    if args.usd:
        if summary.rewards_usd is None:
            print("USD: N/A")
        else:
            print(f"Price:   ${summary.price:.6f}")
            print(f"Daily:   ${format_amount(summary.rewards_usd.daily, 2)}")
            print(f"Monthly: ${format_amount(summary.rewards_usd.monthly, 2)}")
            print(f"Yearly:  ${format_amount(summary.rewards_usd.yearly, 2)}")
    if summary.next_tier is not None:
        print(f"Next tier: {summary.next_tier.name} ({summary.next_tier.minimum_stake:,.0f})")
        for policy, days in summary.days_to_next_tier.items():
            print(f"  {policy.value:>8}: {_format_days(days)}")
    print(f"Pool runway: {_format_days(session.pool_runway())}")

    if args.hypothetical is not None:
        report = session.compare_stakes(args.stake, args.hypothetical)
        if not is_available(report) or report.no_next_tier:
            print("Comparison: N/A")
        else:
            for policy in CompoundingPolicy:
                diff = report.by_policy[policy].difference
                print(f"  {policy.value:>8}: {'N/A' if diff is None else f'{diff:+d} days'}")
    return 0


async def _ledger(args, config) -> int:
    async with ActionFeedClient(config) as client:
        session = StakingSession(config, client)
        if args.usd:
            # Only the pool, balance and price jobs exist before a ledger is opened
            await session.scheduler.run_once()
        if args.account:
            ledger = session.open_user_bridge_ledger(args.account)
        else:
            ledger = session.open_bridge_ledger()

        await ledger.refresh()
        for _ in range(args.pages - 1):
            task = ledger.advance()
            if task is None:
                break
            await task

    price = session.price if args.usd else None
    print(f"{len(ledger)} transfers, exhausted={ledger.exhausted}")
    if args.usd:
        volume = sum(r.amount for r in ledger.records)
        usd = "N/A" if price is None else f"${format_amount(volume * price, 2)}"
        print(f"Volume: {format_amount(volume)} ({usd})")
    if args.csv:
        export_ledger_csv(ledger.records, args.csv, price=price)
        print(f"Wrote {args.csv}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="strxledger", description="STRX staking ledger and rewards projections")
    parser.add_argument("--config", help="YAML file of overrides layered over the bundled defaults")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    summary = sub.add_parser("summary", help="Rewards, projection and tier forecast for a stake")
    summary.add_argument("--stake", type=float, required=True)
    summary.add_argument("--hypothetical", type=float)
    summary.add_argument("--usd", action="store_true", help="Also show values in USD at the oracle price")

    ledger = sub.add_parser("ledger", help="Accumulate bridge transfers")
    ledger.add_argument("--account", help="Only transfers from or to this account")
    ledger.add_argument("--pages", type=int, default=1)
    ledger.add_argument("--csv", help="Export the ledger to CSV")
    ledger.add_argument("--usd", action="store_true", help="Add USD values at the oracle price")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    handler = _summary if args.command == "summary" else _ledger
    return asyncio.run(handler(args, config))


if __name__ == "__main__":
    sys.exit(main())
