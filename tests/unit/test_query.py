"""
Unit tests for the query engine.

Tests cover:
- Tag filter semantics
- Sorting and pagination
- Bounded scan cursor stop conditions
- Day listing over scan and prefix-capable stores
"""

import logging

import pytest

from gloss_sdk.codec import EntryCodec
from gloss_sdk.errors import MalformedKeyError, StoreError
from gloss_sdk.keys import record_key
from gloss_sdk.query import (
    QueryEngine,
    ScanCursor,
    ScanStopReason,
    matches_tag_filter,
    paginate,
    sort_entries,
)
from gloss_sdk.store import InMemoryRecordStore, RecordQuery, StoreCapabilities
from gloss_sdk.types import LogEntry, QueryOptions, SortOrder, TagQueryMode

DAY = "2025-10-06"


def make_entry(i: int, day: str = DAY, tags=("t",)) -> LogEntry:
    """Helper to build the i-th entry of a day (keys ascend with i)."""
    return LogEntry(
        key=f"{day}/10{i:02d}00-000abcd",
        at=f"{day}T10:{i:02d}:00.000Z",
        text=f"entry {i}",
        tags=tags,
        assets=(),
    )


async def seed(store: InMemoryRecordStore, controller: str, *entries: LogEntry) -> None:
    """Helper to write entries as ``controller``."""
    handle = store.as_controller(controller)
    for entry in entries:
        value = EntryCodec().encode(entry).decode("utf-8")
        await handle.set(record_key(entry.key), value, tags=list(entry.tags or ()))


class TestTagFilter:
    """Tests for matches_tag_filter."""

    def test_any_mode(self):
        assert matches_tag_filter(["a", "b"], ["b", "z"])
        assert not matches_tag_filter(["a", "b"], ["z"])

    def test_all_mode(self):
        assert matches_tag_filter(["a", "b", "c"], ["a", "c"], TagQueryMode.ALL)
        assert not matches_tag_filter(["a"], ["a", "c"], TagQueryMode.ALL)

    @pytest.mark.parametrize("tags", [None, [], ()])
    def test_entries_without_tags_never_match(self, tags):
        """Untagged entries fail any non-empty tag filter, in either mode."""
        assert not matches_tag_filter(tags, ["a"])
        assert not matches_tag_filter(tags, ["a"], TagQueryMode.ALL)

    def test_string_mode_accepted(self):
        """Mode may be given as its string value."""
        assert matches_tag_filter(["a"], ["a", "b"], "any")
        assert not matches_tag_filter(["a"], ["a", "b"], "all")


class TestSortAndPaginate:
    """Tests for sort_entries and paginate."""

    @pytest.fixture
    def entries(self):
        return [make_entry(i) for i in range(10)]

    def test_sort_ascending(self, entries):
        shuffled = entries[5:] + entries[:5]
        assert sort_entries(shuffled) == entries

    def test_sort_descending_is_reverse(self, entries):
        assert sort_entries(entries, SortOrder.DESC) == list(reversed(entries))

    def test_paginate_window(self, entries):
        """skip 3, limit 4 returns positions 3..6."""
        assert paginate(entries, skip=3, limit=4) == entries[3:7]

    def test_negative_skip_clamped(self, entries):
        assert paginate(entries, skip=-5, limit=2) == entries[:2]

    @pytest.mark.parametrize("limit", [None, 0, -1])
    def test_no_limit_returns_rest(self, entries, limit):
        assert paginate(entries, skip=8, limit=limit) == entries[8:]


class TestScanCursor:
    """Tests for ScanCursor."""

    @pytest.fixture
    def store(self):
        return InMemoryRecordStore(controller="02alice")

    def test_rejects_non_positive_bounds(self):
        with pytest.raises(ValueError):
            ScanCursor(query=RecordQuery(), page_size=0)
        with pytest.raises(ValueError):
            ScanCursor(query=RecordQuery(), max_pages=0)

    @pytest.mark.asyncio
    async def test_short_page_stops(self, store):
        """A page shorter than requested ends the scan."""
        for i in range(3):
            await store.set(f"entry/k{i}", "v")

        cursor = ScanCursor(query=RecordQuery(), page_size=2, max_pages=10)
        records = await cursor.run(store)

        assert len(records) == 3
        assert cursor.page_index == 2
        assert cursor.stop_reason == ScanStopReason.SHORT_PAGE

    @pytest.mark.asyncio
    async def test_budget_exhausted(self, store):
        """The scan stops at max_pages even with more data."""
        for i in range(10):
            await store.set(f"entry/k{i}", "v")

        cursor = ScanCursor(query=RecordQuery(), page_size=2, max_pages=2)
        records = await cursor.run(store)

        assert len(records) == 4
        assert cursor.budget_exhausted
        assert await cursor.advance(store) == []

    @pytest.mark.asyncio
    async def test_satisfied(self, store):
        """The scan stops early once the predicate is met."""
        for i in range(10):
            await store.set(f"entry/k{i}", "v")

        cursor = ScanCursor(
            query=RecordQuery(),
            page_size=2,
            max_pages=10,
            is_satisfied=lambda records: len(records) >= 3,
        )
        await cursor.run(store)

        assert cursor.stop_reason == ScanStopReason.SATISFIED
        assert cursor.page_index == 2

    @pytest.mark.asyncio
    async def test_pages_advance_offset(self, store):
        """Each page starts where the previous one ended."""
        for i in range(5):
            await store.set(f"entry/k{i}", "v")

        cursor = ScanCursor(query=RecordQuery(skip=1), page_size=2, max_pages=10)
        await cursor.run(store)

        assert [q.skip for q in store.get_calls] == [1, 3, 5]
        assert [r.key for r in cursor.records] == [f"entry/k{i}" for i in range(1, 5)]


class TestQueryEngine:
    """Tests for QueryEngine.list_day."""

    @pytest.fixture
    def store(self):
        return InMemoryRecordStore(controller="02alice")

    @pytest.fixture
    def engine(self, store):
        return QueryEngine(store)

    @pytest.mark.asyncio
    async def test_lists_all_authors_sorted(self, store, engine):
        """Entries from every controller come back in key order."""
        await seed(store, "02bob", make_entry(2), make_entry(0))
        await seed(store, "02alice", make_entry(1))

        entries = await engine.list_day(DAY)

        assert [e.text for e in entries] == ["entry 0", "entry 1", "entry 2"]
        assert {e.controller for e in entries} == {"02alice", "02bob"}

    @pytest.mark.asyncio
    async def test_other_days_excluded(self, store, engine):
        await seed(store, "02alice", make_entry(0), make_entry(1, day="2025-10-07"))
        assert [e.key for e in await engine.list_day(DAY)] == [make_entry(0).key]

    @pytest.mark.asyncio
    async def test_controller_filter(self, store, engine):
        await seed(store, "02bob", make_entry(0))
        await seed(store, "02alice", make_entry(1))

        entries = await engine.list_day(DAY, QueryOptions(controller="02bob"))

        assert [e.controller for e in entries] == ["02bob"]

    @pytest.mark.asyncio
    async def test_tag_filter_all(self, store, engine):
        await seed(
            store,
            "02alice",
            make_entry(0, tags=("auth",)),
            make_entry(1, tags=("auth", "bugfix")),
            make_entry(2, tags=None),
        )

        entries = await engine.list_day(
            DAY, QueryOptions(tags=["auth", "bugfix"], tag_query_mode=TagQueryMode.ALL)
        )

        assert [e.text for e in entries] == ["entry 1"]

    @pytest.mark.asyncio
    async def test_filter_then_sort_then_paginate(self, store, engine):
        """Pagination applies to the filtered, ordered result."""
        await seed(store, "02alice", *[make_entry(i) for i in range(0, 10, 2)])
        await seed(store, "02bob", *[make_entry(i) for i in range(1, 10, 2)])

        entries = await engine.list_day(
            DAY,
            QueryOptions(controller="02alice", sort_order=SortOrder.DESC, skip=1, limit=2),
        )

        assert [e.text for e in entries] == ["entry 6", "entry 4"]

    @pytest.mark.asyncio
    async def test_malformed_day_rejected(self, engine):
        with pytest.raises(MalformedKeyError):
            await engine.list_day("2025/10/06")

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, store, engine):
        store.inject_failure("get")
        with pytest.raises(StoreError):
            await engine.list_day(DAY)

    @pytest.mark.asyncio
    async def test_budget_exhaustion_warns_and_returns_partial(self, store, caplog):
        """An exhausted scan logs a warning and returns what it found."""
        await seed(store, "02alice", *[make_entry(i) for i in range(10)])
        engine = QueryEngine(store, page_size=2, max_pages=2)

        with caplog.at_level(logging.WARNING, logger="gloss_sdk.query"):
            entries = await engine.list_day(DAY)

        assert len(entries) == 4
        assert engine.last_scan.stop_reason == ScanStopReason.BUDGET_EXHAUSTED
        assert "Scan budget exhausted" in caplog.text

    @pytest.mark.asyncio
    async def test_per_query_scan_bounds(self, store, engine):
        """QueryOptions page bounds override the engine defaults."""
        await seed(store, "02alice", *[make_entry(i) for i in range(6)])

        entries = await engine.list_day(DAY, QueryOptions(page_size=1, max_pages=3))

        assert len(entries) == 3
        assert len(store.get_calls) == 3

    @pytest.mark.asyncio
    async def test_scan_stops_when_limit_satisfied(self, store):
        """A limited query stops scanning once enough entries are found."""
        await seed(store, "02alice", *[make_entry(i) for i in range(10)])
        engine = QueryEngine(store, page_size=2, max_pages=10)

        entries = await engine.list_day(DAY, QueryOptions(limit=3))

        assert [e.text for e in entries] == ["entry 0", "entry 1", "entry 2"]
        assert engine.last_scan.stop_reason == ScanStopReason.SATISFIED
        assert engine.last_scan.page_index == 2

    @pytest.mark.asyncio
    async def test_prefix_capable_store(self):
        """Stores with key-prefix support are queried by day prefix."""
        store = InMemoryRecordStore(
            controller="02alice", capabilities=StoreCapabilities(key_prefix=True)
        )
        await seed(store, "02alice", make_entry(0), make_entry(1, day="2025-10-07"))
        engine = QueryEngine(store)

        entries = await engine.list_day(DAY)

        assert [e.key for e in entries] == [make_entry(0).key]
        assert store.get_calls[0].key_prefix == "entry/2025-10-06"
        assert engine.last_scan is None

    @pytest.mark.asyncio
    async def test_txid_only_on_request(self, store, engine):
        await seed(store, "02alice", make_entry(0))

        plain = await engine.list_day(DAY)
        with_txid = await engine.list_day(DAY, QueryOptions(include_txid=True))

        assert plain[0].txid is None
        assert with_txid[0].txid is not None

    @pytest.mark.asyncio
    async def test_list_owned(self, store, engine):
        await seed(store, "02bob", make_entry(0))
        await seed(store, "02alice", make_entry(1))

        owned = await engine.list_owned(DAY, "02alice")

        assert [e.text for e in owned] == ["entry 1"]

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_does_not_block_day(self, store, engine):
        """One entry with an unusable timestamp still lists with the rest."""
        odd = LogEntry(key=f"{DAY}/110000-000oddd", at="0001-01-01T00:00:00+01:00", text="odd")
        await seed(store, "02mallory", odd)
        await seed(store, "02alice", make_entry(0))

        entries = await engine.list_day(DAY)

        assert [e.text for e in entries] == ["entry 0", "odd"]

    @pytest.mark.asyncio
    async def test_limited_scan_decodes_each_value_once(self, store):
        """Early-stop checks do not inflate the shared decode counters."""
        await seed(store, "02alice", *[make_entry(i) for i in range(10)])
        engine = QueryEngine(store, page_size=2, max_pages=10)

        await engine.list_day(DAY, QueryOptions(limit=3))

        assert engine.last_scan.page_index == 2
        assert engine.reconstructor.codec.stats.decoded == 4
