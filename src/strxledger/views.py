"""Ledger builders for each dashboard view.

Every view uses the same LedgerAccumulator. They differ only in which
account's history is paged and which relevance predicate is installed.
"""

from typing import Callable, Iterable, Optional

from .config.schema import Config
from .engine.ledger import FilterPredicate, LedgerAccumulator
from .engine.records import TransferRecord
from .feed.client import ActionFeedClient

RecordPredicate = Callable[[TransferRecord], bool]


def excludes_memo(marker: str) -> RecordPredicate:
    """Drop records whose memo contains marker."""
    def predicate(record: TransferRecord) -> bool:
        return marker not in record.memo
    return predicate


def involves_account(account: str) -> RecordPredicate:
    """Keep records sent from or to account."""
    def predicate(record: TransferRecord) -> bool:
        return record.from_account == account or record.to_account == account
    return predicate


def memo_in(memos: Iterable[str]) -> RecordPredicate:
    """Keep records whose memo is exactly one of memos."""
    allowed = frozenset(memos)

    def predicate(record: TransferRecord) -> bool:
        return record.memo in allowed
    return predicate


def matches_search(term: str) -> RecordPredicate:
    """Case-insensitive substring match on the sender or receiver."""
    needle = term.lower()

    def predicate(record: TransferRecord) -> bool:
        return needle in record.from_account.lower() or needle in record.to_account.lower()
    return predicate


def all_of(*predicates: RecordPredicate) -> RecordPredicate:
    """Conjunction of predicates."""
    def predicate(record: TransferRecord) -> bool:
        return all(p(record) for p in predicates)
    return predicate


def bridge_ledger(client: Optional[ActionFeedClient], config: Config) -> LedgerAccumulator:
    """All bridge transfers except fee legs."""
    return LedgerAccumulator(
        fetch_page=client.page_fetcher(config.feed.bridge_account) if client else None,
        page_size=config.pagination.bridge_page_size,
        filter_predicate=bridge_filter(config),
        name="bridge",
    )


def user_bridge_ledger(client: Optional[ActionFeedClient], account: str, config: Config) -> LedgerAccumulator:
    """Bridge transfers sent from or to one account, fee legs excluded."""
    return LedgerAccumulator(
        fetch_page=client.page_fetcher(config.feed.bridge_account) if client else None,
        page_size=config.pagination.bridge_page_size,
        filter_predicate=user_bridge_filter(account, config),
        name=f"bridge:{account}",
    )


def user_staking_ledger(client: Optional[ActionFeedClient], account: str, config: Config) -> LedgerAccumulator:
    """An account's stake, unstake and claim transfers."""
    return LedgerAccumulator(
        fetch_page=(
            client.page_fetcher(account, action_account=config.feed.token_contract) if client else None
        ),
        page_size=config.pagination.user_page_size,
        filter_predicate=staking_filter(config),
        name=f"staking:{account}",
    )


def bridge_filter(config: Config) -> FilterPredicate:
    return excludes_memo(config.memos.fee_marker)


def user_bridge_filter(account: str, config: Config) -> FilterPredicate:
    return all_of(involves_account(account), excludes_memo(config.memos.fee_marker))


def staking_filter(config: Config) -> FilterPredicate:
    return memo_in(config.memos.staking_memos)
