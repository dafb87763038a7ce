"""Tests for the ledger accumulator.

Covers the merge properties (idempotence, no data loss, deduplication,
ordering), exhaustion, and the async pagination contract: one fetch in
flight, errored pages, and results from a stale generation.
"""

import asyncio
import itertools
import logging
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from strxledger.engine.ledger import FetchResult, LedgerAccumulator, PaginationCursor
from strxledger.engine.records import TransferRecord
from strxledger.errors import TransientFetchFailure


BASE_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_record(tx, minutes, from_account="alice", to_account="bridge.strx", amount=10.0, memo="STRX-SPL@abc"):
    return TransferRecord(
        transaction_id=tx,
        timestamp_utc=BASE_TIME + timedelta(minutes=minutes),
        from_account=from_account,
        to_account=to_account,
        amount=amount,
        memo=memo,
    )


def make_action(tx, timestamp, memo="STRX-SPL@abc"):
    return {
        "trx_id": tx,
        "timestamp": timestamp,
        "act": {"data": {"from": "alice", "to": "bridge.strx", "quantity": "12.5000 STRX", "memo": memo}},
    }


class StaticFeed:
    """Serves fixed pages keyed by offset and records every request."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def __call__(self, offset, limit):
        self.calls.append((offset, limit))
        return FetchResult(records=tuple(self.pages.get(offset, ())))


class TestPaginationCursor:
    """Cursor validation."""

    def test_defaults(self):
        cursor = PaginationCursor()
        assert cursor.offset == 0
        assert not cursor.exhausted

    def test_advanced_moves_one_page(self):
        cursor = PaginationCursor(offset=0, page_size=50).advanced()
        assert cursor.offset == 50
        assert cursor.page_size == 50

    def test_rejects_negative_offset(self):
        with pytest.raises(ValueError):
            PaginationCursor(offset=-1)

    def test_rejects_zero_page_size(self):
        with pytest.raises(ValueError):
            PaginationCursor(page_size=0)


class TestMerge:
    """Merge properties of ingest_page."""

    def test_newest_first(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([make_record("a", 1), make_record("b", 3), make_record("c", 2)])
        assert [r.transaction_id for r in ledger.records] == ["b", "c", "a"]

    def test_ties_keep_arrival_order(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([make_record("first", 5), make_record("second", 5)])
        ledger.ingest_page([make_record("third", 5)])
        assert [r.transaction_id for r in ledger.records] == ["first", "second", "third"]

    def test_merge_is_idempotent(self):
        ledger = LedgerAccumulator(None, page_size=10)
        page = [make_record("a", 1), make_record("b", 2)]
        ledger.ingest_page(page)
        before = ledger.records

        added = ledger.ingest_page(page)

        assert added == 0
        assert ledger.records == before

    def test_overlapping_pages_deduplicated(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([make_record("a", 1), make_record("b", 2), make_record("c", 3)])
        added = ledger.ingest_page([make_record("c", 3), make_record("d", 4)])

        assert added == 1
        ids = [r.transaction_id for r in ledger.records]
        assert len(ids) == len(set(ids)) == 4

    def test_duplicates_within_a_page(self):
        ledger = LedgerAccumulator(None, page_size=10)
        added = ledger.ingest_page([make_record("a", 1), make_record("a", 1)])
        assert added == 1
        assert len(ledger) == 1

    def test_no_data_loss_in_any_order(self):
        """Every accepted record stays in the ledger whatever order pages arrive in."""
        pages = [
            [make_record("a", 1), make_record("b", 2)],
            [make_record("b", 2), make_record("c", 3)],
            [make_record("d", 0), make_record("a", 1)],
        ]
        results = set()
        for order in itertools.permutations(pages):
            ledger = LedgerAccumulator(None, page_size=10)
            sizes = []
            for page in order:
                ledger.ingest_page(page)
                sizes.append(len(ledger))
            assert sizes == sorted(sizes)
            results.add(tuple(r.transaction_id for r in ledger.records))

        assert results == {("c", "b", "a", "d")}

    def test_contains_by_identity(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([make_record("a", 1)])
        assert "a" in ledger
        assert "z" not in ledger

    def test_filter_predicate_applied(self):
        ledger = LedgerAccumulator(
            None, page_size=10, filter_predicate=lambda r: r.from_account == "alice"
        )
        ledger.ingest_page([make_record("a", 1), make_record("b", 2, from_account="bob")])
        assert [r.transaction_id for r in ledger.records] == ["a"]

    def test_per_call_predicate_overrides(self):
        ledger = LedgerAccumulator(None, page_size=10, filter_predicate=lambda r: False)
        added = ledger.ingest_page([make_record("a", 1)], filter_predicate=lambda r: True)
        assert added == 1


class TestExhaustion:
    """Exhaustion is driven by zero new records, never by page length."""

    def test_page_of_known_records_exhausts(self):
        ledger = LedgerAccumulator(None, page_size=10)
        page = [make_record("a", 1), make_record("b", 2)]
        ledger.ingest_page(page)
        assert not ledger.exhausted

        ledger.ingest_page(page)
        assert ledger.exhausted

    def test_empty_page_exhausts(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([])
        assert ledger.exhausted

    def test_short_page_does_not_exhaust(self):
        ledger = LedgerAccumulator(None, page_size=5)
        ledger.ingest_page([make_record("a", 1), make_record("b", 2)])
        assert not ledger.exhausted

    def test_fully_filtered_page_exhausts(self):
        ledger = LedgerAccumulator(None, page_size=10, filter_predicate=lambda r: False)
        ledger.ingest_page([make_record("a", 1)])
        assert ledger.exhausted

    def test_exhaustion_is_sticky(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([])
        ledger.ingest_page([make_record("late", 9)])
        assert ledger.exhausted
        assert "late" in ledger

    def test_advance_after_exhaustion_issues_no_fetch(self):
        feed = StaticFeed({})
        ledger = LedgerAccumulator(feed, page_size=10)
        ledger.ingest_page([])

        assert ledger.advance() is None
        assert feed.calls == []

    def test_exhaustion_logged(self, caplog):
        ledger = LedgerAccumulator(None, page_size=10, name="bridge")
        with caplog.at_level(logging.INFO, logger="strxledger.engine.ledger"):
            ledger.ingest_page([])
        assert "bridge: feed exhausted" in caplog.text


class TestMalformedRecords:
    """Unparseable actions are dropped without aborting the page."""

    def test_bad_timestamp_dropped(self, caplog):
        ledger = LedgerAccumulator(None, page_size=10)
        actions = [
            make_action("good1", "2024-05-01T10:00:00.000"),
            make_action("bad", "not-a-time"),
            make_action("good2", "2024-05-01T11:00:00.500"),
        ]
        with caplog.at_level(logging.WARNING):
            added = ledger.ingest_actions(actions)

        assert added == 2
        assert [r.transaction_id for r in ledger.records] == ["good2", "good1"]
        assert "bad" in caplog.text

    def test_missing_data_dropped(self):
        ledger = LedgerAccumulator(None, page_size=10)
        added = ledger.ingest_actions([
            {"trx_id": "x", "timestamp": "2024-05-01T10:00:00"},
            make_action("ok", "2024-05-01T10:00:00"),
        ])
        assert added == 1
        assert "ok" in ledger


class TestPagination:
    """Async fetch scheduling."""

    def test_refresh_then_advance(self):
        feed = StaticFeed({
            0: [make_record("a", 3), make_record("b", 2)],
            2: [make_record("c", 1)],
        })

        async def scenario():
            ledger = LedgerAccumulator(feed, page_size=2)
            first = await ledger.refresh()
            second = await ledger.advance()
            return ledger, first, second

        ledger, first, second = asyncio.run(scenario())

        assert (first, second) == (2, 1)
        assert feed.calls == [(0, 2), (2, 2)]
        assert [r.transaction_id for r in ledger.records] == ["a", "b", "c"]
        assert ledger.cursor.offset == 2

    def test_advance_until_exhausted(self):
        feed = StaticFeed({
            0: [make_record("a", 3)],
            1: [make_record("b", 2)],
            2: [make_record("b", 2)],
        })

        async def scenario():
            ledger = LedgerAccumulator(feed, page_size=1)
            await ledger.refresh()
            while True:
                task = ledger.advance()
                if task is None:
                    return ledger
                await task

        ledger = asyncio.run(scenario())

        assert ledger.exhausted
        assert len(ledger) == 2
        assert feed.calls == [(0, 1), (1, 1), (2, 1)]

    def test_refresh_refetches_current_offset_after_exhaustion(self):
        feed = StaticFeed({0: [make_record("a", 1)]})

        async def scenario():
            ledger = LedgerAccumulator(feed, page_size=10)
            await ledger.refresh()
            await ledger.refresh()
            assert ledger.exhausted
            feed.pages[0] = [make_record("b", 2), make_record("a", 1)]
            added = await ledger.refresh()
            return ledger, added

        ledger, added = asyncio.run(scenario())

        assert added == 1
        assert [r.transaction_id for r in ledger.records] == ["b", "a"]

    def test_at_most_one_fetch_in_flight(self):
        calls = []

        async def scenario():
            gate = asyncio.Event()

            async def fetch(offset, limit):
                calls.append(offset)
                await gate.wait()
                return FetchResult(records=(make_record("a", 1),))

            ledger = LedgerAccumulator(fetch, page_size=10)
            first = ledger.refresh()
            assert ledger.fetch_in_flight
            assert ledger.advance() is None
            assert ledger.refresh() is None
            gate.set()
            added = await first
            return ledger, added

        ledger, added = asyncio.run(scenario())

        assert calls == [0]
        assert added == 1
        assert not ledger.fetch_in_flight
        assert ledger.cursor.offset == 0

    def test_reset_cancels_fetch_in_flight(self):
        calls = []

        async def scenario():
            gate = asyncio.Event()

            async def fetch(offset, limit):
                calls.append(offset)
                await gate.wait()
                return FetchResult(records=(make_record("fresh", 1),))

            ledger = LedgerAccumulator(fetch, page_size=10)
            stale = ledger.refresh()
            await asyncio.sleep(0)
            ledger.reset()
            fresh = ledger.refresh()
            assert fresh is not None
            gate.set()
            added = await fresh
            await asyncio.wait({stale})
            return ledger, stale, added

        ledger, stale, added = asyncio.run(scenario())

        assert stale.cancelled()
        assert calls == [0, 0]
        assert added == 1
        assert [r.transaction_id for r in ledger.records] == ["fresh"]
        assert ledger.discarded_results == 0

    def test_reset_discards_result_that_outlives_cancel(self):
        async def scenario():
            gate = asyncio.Event()

            async def fetch(offset, limit):
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    pass
                return FetchResult(records=(make_record("old", 1),))

            ledger = LedgerAccumulator(fetch, page_size=10)
            stale = ledger.refresh()
            await asyncio.sleep(0)
            ledger.reset()
            assert not ledger.fetch_in_flight
            added = await stale
            return ledger, added

        ledger, added = asyncio.run(scenario())

        assert added == 0
        assert len(ledger) == 0
        assert ledger.generation == 1
        assert ledger.discarded_results == 1

    def test_reset_installs_new_filter(self):
        ledger = LedgerAccumulator(None, page_size=10)
        ledger.ingest_page([make_record("a", 1)])
        ledger.reset(filter_predicate=lambda r: r.from_account == "bob")
        ledger.ingest_page([make_record("a", 1), make_record("b", 2, from_account="bob")])

        assert [r.transaction_id for r in ledger.records] == ["b"]
        assert ledger.cursor == PaginationCursor(offset=0, page_size=10)

    def test_errored_page_keeps_ledger(self):
        responses = [FetchResult(records=(make_record("a", 1),)), FetchResult(errored=True)]

        async def fetch(offset, limit):
            return responses.pop(0)

        async def scenario():
            ledger = LedgerAccumulator(fetch, page_size=10)
            await ledger.refresh()
            before = ledger.records
            added = await ledger.advance()
            return ledger, before, added

        ledger, before, added = asyncio.run(scenario())

        assert added == 0
        assert ledger.records == before
        assert not ledger.exhausted
        assert ledger.failed_fetches == 1

    def test_transient_failure_keeps_ledger(self):
        async def fetch(offset, limit):
            raise TransientFetchFailure("connection reset")

        async def scenario():
            ledger = LedgerAccumulator(fetch, page_size=10)
            ledger.ingest_page([make_record("a", 1)])
            added = await ledger.refresh()
            return ledger, added

        ledger, added = asyncio.run(scenario())

        assert added == 0
        assert len(ledger) == 1
        assert not ledger.exhausted
        assert ledger.failed_fetches == 1
        assert not ledger.fetch_in_flight

    def test_no_collaborator_raises(self):
        async def scenario():
            LedgerAccumulator(None, page_size=10).refresh()

        with pytest.raises(RuntimeError):
            asyncio.run(scenario())
