"""
Query engine for the Gloss SDK.

Lists a day's entries from all authors:

    store records ──▶ ChainReconstructor ──▶ filter ──▶ sort ──▶ paginate

Candidate records are fetched with a key-prefix query when the store
supports one. Otherwise the engine pages through the protocol-wide record
stream with a ScanCursor, bounded by ``page_size`` and ``max_pages``.

Invariants:
    - Filtering happens before sorting, sorting before pagination
    - Descending order is the reverse of the ascending key sort
    - Controller and tag filters are always applied client-side, even when
      the store filtered server-side
    - A scan that hits max_pages returns what it has; it never raises
    - Every completed page leaves the cursor holding a valid partial answer

How to change safely:
    - Keep scan bounds explicit; never loop on the store without a cap
    - New filters must be pure functions of a LogEntry
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional

from .chain import ChainReconstructor
from .keys import day_record_key, validate_day
from .store.base import Record, RecordQuery, RecordStore
from .types import LogEntry, QueryOptions, SortOrder, TagQueryMode

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200
DEFAULT_MAX_PAGES = 10


class ScanStopReason(Enum):
    """Why a scan cursor stopped."""

    SHORT_PAGE = "short_page"
    SATISFIED = "satisfied"
    BUDGET_EXHAUSTED = "budget_exhausted"


def matches_tag_filter(
    tags: Iterable[str] | None,
    wanted: Iterable[str],
    mode: TagQueryMode = TagQueryMode.ANY,
) -> bool:
    """Check an entry's tags against a tag filter.

    Args:
        tags: Entry tags (None or empty never match)
        wanted: Filter tags
        mode: ANY matches on intersection, ALL requires a subset

    Returns:
        True if the entry passes the filter
    """
    have = set(tags or ())
    if not have:
        return False
    wanted_set = set(wanted)
    if TagQueryMode(mode) == TagQueryMode.ALL:
        return wanted_set <= have
    return bool(have & wanted_set)


def filter_entries(entries: Iterable[LogEntry], options: QueryOptions) -> List[LogEntry]:
    """Apply controller and tag filters."""
    result = []
    for entry in entries:
        if options.controller and entry.controller != options.controller:
            continue
        if options.tags and not matches_tag_filter(entry.tags, options.tags, options.tag_query_mode):
            continue
        result.append(entry)
    return result


def sort_entries(entries: Iterable[LogEntry], order: SortOrder = SortOrder.ASC) -> List[LogEntry]:
    """Sort by key ascending; DESC reverses the ascending result."""
    ordered = sorted(entries, key=lambda e: e.key)
    if SortOrder(order) == SortOrder.DESC:
        ordered.reverse()
    return ordered


def paginate(entries: List[LogEntry], skip: int = 0, limit: int | None = None) -> List[LogEntry]:
    """Slice ``[skip, skip + limit)``; skip clamps to 0, limit <= 0 means all."""
    start = max(0, skip or 0)
    if limit is not None and limit > 0:
        return entries[start:start + limit]
    return entries[start:]


@dataclass
class ScanCursor:
    """Bounded, resumable walk over the store's protocol-wide record stream.

    Each advance() fetches one page. The cursor stops when a page comes back
    shorter than requested, when ``is_satisfied`` reports enough results, or
    when ``max_pages`` pages have been read.

    Attributes:
        query: Base query; limit/skip are managed by the cursor
        page_size: Rows requested per page
        max_pages: Hard cap on pages fetched
        page_index: Pages fetched so far
        offset: Store offset of the next page
        records: Records accumulated across pages
        stop_reason: Set once the cursor has stopped
    """

    query: RecordQuery
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = DEFAULT_MAX_PAGES
    is_satisfied: Optional[Callable[[List[Record]], bool]] = None
    page_index: int = 0
    offset: int = 0
    records: List[Record] = field(default_factory=list)
    stop_reason: Optional[ScanStopReason] = None

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.max_pages <= 0:
            raise ValueError("max_pages must be positive")
        self.offset = max(0, self.query.skip)

    @property
    def done(self) -> bool:
        return self.stop_reason is not None

    @property
    def budget_exhausted(self) -> bool:
        return self.stop_reason == ScanStopReason.BUDGET_EXHAUSTED

    async def advance(self, store: RecordStore) -> List[Record]:
        """Fetch the next page and update the stop condition.

        Returns:
            Records of the fetched page (empty if already stopped)
        """
        if self.done:
            return []

        page_query = RecordQuery(
            controller=self.query.controller,
            tags=self.query.tags,
            tag_query_mode=self.query.tag_query_mode,
            limit=self.page_size,
            skip=self.offset,
            sort_order=self.query.sort_order,
            history=self.query.history,
        )
        page = await store.get(page_query)

        # State only changes once the page is in hand.
        self.records.extend(page)
        self.page_index += 1
        self.offset += len(page)

        if len(page) < self.page_size:
            self.stop_reason = ScanStopReason.SHORT_PAGE
        elif self.is_satisfied is not None and self.is_satisfied(self.records):
            self.stop_reason = ScanStopReason.SATISFIED
        elif self.page_index >= self.max_pages:
            self.stop_reason = ScanStopReason.BUDGET_EXHAUSTED

        return page

    async def run(self, store: RecordStore) -> List[Record]:
        """Advance until stopped and return the accumulated records."""
        while not self.done:
            await self.advance(store)
        return self.records


class QueryEngine:
    """Lists, filters, sorts and paginates a day's log entries.

    Attributes:
        store: Record store to read from
        reconstructor: Decodes and de-duplicates physical records
        page_size: Default scan page size
        max_pages: Default scan page cap

    Example:
        >>> engine = QueryEngine(store)
        >>> entries = await engine.list_day("2025-10-06", QueryOptions(tags=["auth"]))
    """

    def __init__(
        self,
        store: RecordStore,
        reconstructor: ChainReconstructor | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self.store = store
        self.reconstructor = reconstructor or ChainReconstructor()
        self.page_size = page_size
        self.max_pages = max_pages
        self.last_scan: ScanCursor | None = None

    async def list_day(
        self,
        day: str,
        options: QueryOptions | None = None,
        *,
        include_history: bool = False,
    ) -> List[LogEntry]:
        """List all entries for a UTC day from all authors.

        Args:
            day: Day (YYYY-MM-DD)
            options: Filters, ordering and pagination
            include_history: Also surface entries only present in history

        Returns:
            Filtered entries sorted by key, sliced to the requested page

        Raises:
            MalformedKeyError: If ``day`` is not YYYY-MM-DD
            StoreError: If the store cannot be read
        """
        validate_day(day)
        options = options or QueryOptions()

        records = await self._fetch(day, options, include_history)
        entries = self._reconstruct(records, day, options, include_history)
        result = paginate(
            sort_entries(filter_entries(entries, options), options.sort_order),
            options.skip,
            options.limit,
        )

        logger.debug(
            "Listed day",
            extra={
                "day": day,
                "records": len(records),
                "entries": len(entries),
                "returned": len(result),
            },
        )
        return result

    async def list_owned(self, day: str, controller: str) -> List[LogEntry]:
        """All of one controller's entries for a day, ascending by key."""
        return await self.list_day(day, QueryOptions(controller=controller))

    def _reconstruct(
        self,
        records: List[Record],
        day: str,
        options: QueryOptions,
        include_history: bool,
    ) -> List[LogEntry]:
        return self.reconstructor.reconstruct(
            records,
            day,
            include_history=include_history,
            include_txid=options.include_txid,
        )

    def _store_query(self, options: QueryOptions, include_history: bool) -> RecordQuery:
        capabilities = self.store.capabilities
        return RecordQuery(
            controller=options.controller if capabilities.controller_filter else None,
            tags=options.tags if options.tags and capabilities.tag_filter else None,
            tag_query_mode=options.tag_query_mode,
            sort_order=options.sort_order,
            history=include_history,
        )

    async def _fetch(
        self,
        day: str,
        options: QueryOptions,
        include_history: bool,
    ) -> List[Record]:
        base = self._store_query(options, include_history)

        if self.store.capabilities.key_prefix:
            return await self.store.get(
                RecordQuery(
                    key_prefix=day_record_key(day),
                    controller=base.controller,
                    tags=base.tags,
                    tag_query_mode=base.tag_query_mode,
                    sort_order=base.sort_order,
                    history=base.history,
                )
            )

        wanted = None
        if options.limit is not None and options.limit > 0:
            wanted = max(0, options.skip) + options.limit

        # Counting runs on a forked codec so the shared stats see each value once.
        counting = ChainReconstructor(self.reconstructor.codec.fork())

        def is_satisfied(records: List[Record]) -> bool:
            if wanted is None:
                return False
            entries = counting.reconstruct(records, day, include_history=include_history)
            return len(filter_entries(entries, options)) >= wanted

        cursor = ScanCursor(
            query=base,
            page_size=options.page_size or self.page_size,
            max_pages=options.max_pages or self.max_pages,
            is_satisfied=is_satisfied,
        )
        self.last_scan = cursor
        records = await cursor.run(self.store)

        if cursor.budget_exhausted:
            logger.warning(
                "Scan budget exhausted before end of data; results may be incomplete",
                extra={
                    "day": day,
                    "pages": cursor.page_index,
                    "page_size": cursor.page_size,
                    "records": len(records),
                },
            )
        return records
