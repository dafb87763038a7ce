"""Ledger accumulator - incremental merge of a paginated, append-only action feed.

Key Concepts:
- Pages are merged by set difference on record identity, never by assuming
  that consecutive pages are contiguous or non-overlapping
- The merged ledger is kept newest first; ties keep arrival order
- Exhaustion is set only when a page contributes zero unseen records; a short
  page is not a signal
- Each merge builds a new immutable view and swaps the reference, so readers
  never see a partially sorted ledger
- reset() cancels the fetch in flight and bumps a generation counter;
  a result issued under an older generation is discarded if it still lands
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import (
    Awaitable, Callable, FrozenSet, Generic, Hashable, Iterable, Optional, Tuple, TypeVar
)

from ..errors import TransientFetchFailure
from .records import TransferRecord, records_from_actions

logger = logging.getLogger(__name__)

R = TypeVar("R")

FilterPredicate = Callable[[R], bool]


@dataclass(frozen=True)
class PaginationCursor:
    """Position within the remote feed."""
    offset: int = 0
    page_size: int = 100
    exhausted: bool = False

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")

    def advanced(self) -> 'PaginationCursor':
        """Cursor moved forward by one page."""
        return replace(self, offset=self.offset + self.page_size)


@dataclass(frozen=True)
class FetchResult:
    """One page delivered by the fetch collaborator."""
    records: Tuple = ()
    errored: bool = False


FetchPage = Callable[[int, int], Awaitable[FetchResult]]


@dataclass(frozen=True)
class _LedgerView:
    records: Tuple = ()
    ids: FrozenSet = frozenset()


def _transaction_id(record: TransferRecord) -> str:
    return record.transaction_id


def _timestamp(record: TransferRecord) -> datetime:
    return record.timestamp_utc


class LedgerAccumulator(Generic[R]):
    """Deduplicated, time-ordered view of a remote paginated feed.

    One instance per subject of analysis (an account, a bridge). Call sites
    differ only by the filter predicate they install.

    Usage:
        ledger = LedgerAccumulator(fetch_page, page_size=300, filter_predicate=pred)
        await ledger.refresh()      # first page (None if a fetch is in flight)
        task = ledger.advance()     # next page, returns immediately
        if task is not None:
            await task
        rows = ledger.records
    """

    def __init__(
        self,
        fetch_page: Optional[FetchPage],
        page_size: int,
        filter_predicate: Optional[FilterPredicate] = None,
        identity: Callable[[R], Hashable] = _transaction_id,
        timestamp: Callable[[R], datetime] = _timestamp,
        name: str = "ledger",
    ):
        """
        Initialize accumulator.

        Args:
            fetch_page: Coroutine function (offset, limit) -> FetchResult
            page_size: Records requested per page
            filter_predicate: Relevance filter applied to every incoming page
            identity: Extracts the deduplication key from a record
            timestamp: Extracts the ordering timestamp from a record
            name: Label used in log messages
        """
        self.name = name
        self._fetch_page = fetch_page
        self._filter_predicate = filter_predicate
        self._identity = identity
        self._timestamp = timestamp
        self._page_size = page_size

        self._view = _LedgerView()
        self._cursor = PaginationCursor(offset=0, page_size=page_size)
        self._generation = 0
        self._in_flight: Optional[asyncio.Task] = None

        # Stats
        self.pages_ingested = 0
        self.failed_fetches = 0
        self.discarded_results = 0

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def records(self) -> Tuple[R, ...]:
        """Current ledger, newest first."""
        return self._view.records

    @property
    def cursor(self) -> PaginationCursor:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor.exhausted

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def fetch_in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def __len__(self) -> int:
        return len(self._view.records)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._view.ids

    # =========================================================================
    # Merge
    # =========================================================================

    def ingest_page(self, records: Iterable[R], filter_predicate: Optional[FilterPredicate] = None) -> int:
        """
        Merge one page into the ledger.

        Args:
            records: Records of the page, in delivery order
            filter_predicate: Overrides the installed predicate for this page

        Returns:
            Number of records added
        """
        predicate = filter_predicate or self._filter_predicate
        view = self._view

        seen = set(view.ids)
        residual = []
        for record in records:
            if predicate is not None and not predicate(record):
                continue
            key = self._identity(record)
            if key in seen:
                continue
            seen.add(key)
            residual.append(record)

        self.pages_ingested += 1

        if not residual:
            if not self._cursor.exhausted:
                self._cursor = replace(self._cursor, exhausted=True)
                logger.info(
                    "%s: feed exhausted at offset %d (%d records)",
                    self.name, self._cursor.offset, len(view.records)
                )
            return 0

        # sorted() is stable, also with reverse=True
        merged = tuple(sorted(view.records + tuple(residual), key=self._timestamp, reverse=True))
        self._view = _LedgerView(records=merged, ids=frozenset(seen))

        logger.debug("%s: merged %d new records, ledger size %d", self.name, len(residual), len(merged))
        return len(residual)

    def ingest_actions(self, actions: Iterable[dict], filter_predicate: Optional[FilterPredicate] = None) -> int:
        """Parse raw history actions, dropping malformed ones, then merge them."""
        return self.ingest_page(records_from_actions(actions), filter_predicate)

    # =========================================================================
    # Pagination
    # =========================================================================

    def advance(self) -> Optional[asyncio.Task]:
        """
        Request the next page.

        Returns:
            The scheduled fetch task, or None if exhausted or a fetch is in flight
        """
        if self._cursor.exhausted or self.fetch_in_flight:
            return None
        self._cursor = self._cursor.advanced()
        return self._start_fetch(self._cursor.offset)

    def refresh(self) -> Optional[asyncio.Task]:
        """
        Re-fetch the page at the current offset.

        Returns:
            The scheduled fetch task, or None if a fetch is in flight
        """
        if self.fetch_in_flight:
            return None
        return self._start_fetch(self._cursor.offset)

    def reset(self, filter_predicate: Optional[FilterPredicate] = None) -> None:
        """
        Discard ledger and cursor and start a fresh accumulation.

        The fetch in flight, if any, is cancelled.

        Args:
            filter_predicate: New filter scope; keeps the current one if None
        """
        self._generation += 1
        self._view = _LedgerView()
        self._cursor = PaginationCursor(offset=0, page_size=self._page_size)
        if self._in_flight is not None:
            self._in_flight.cancel()
        self._in_flight = None
        if filter_predicate is not None:
            self._filter_predicate = filter_predicate
        logger.info("%s: reset (generation %d)", self.name, self._generation)

    def _start_fetch(self, offset: int) -> asyncio.Task:
        if self._fetch_page is None:
            raise RuntimeError(f"{self.name}: no fetch collaborator configured")
        task = asyncio.get_running_loop().create_task(self._fetch(offset, self._generation))
        self._in_flight = task
        return task

    async def _fetch(self, offset: int, generation: int) -> int:
        try:
            try:
                result = await self._fetch_page(offset, self._page_size)
            except TransientFetchFailure as exc:
                logger.warning("%s: fetch at offset %d failed: %s", self.name, offset, exc)
                result = FetchResult(errored=True)
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None

        if generation != self._generation:
            self.discarded_results += 1
            logger.debug(
                "%s: discarding page from generation %d (current %d)",
                self.name, generation, self._generation
            )
            return 0

        if result.errored:
            self.failed_fetches += 1
            logger.warning("%s: page at offset %d errored, keeping last good ledger", self.name, offset)
            return 0

        return self.ingest_page(result.records)
