"""
Base protocol and types for the versioned keyed record store.

The store is an external service: each key holds a current value plus an
append-only list of prior values. This module defines the RecordStore
protocol the SDK consumes, along with query and record types.

Invariants:
    - set() creates a new version; earlier values stay reachable via history
    - get() with history=True returns prior values in a store-defined order;
      the order is declared on the record, never assumed by callers
    - Records carry the controller that wrote them

How to change safely:
    - Protocol changes require updating all implementations
    - New query fields must default to "not requested"
    - Advertise new server-side filters through StoreCapabilities
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, runtime_checkable

from ..types import SortOrder, TagQueryMode


class HistoryOrder(str, Enum):
    """Direction of a record's history list."""

    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"


@dataclass(frozen=True)
class StoreCapabilities:
    """Server-side query features a store supports.

    Attributes:
        key_prefix: Can select records by key prefix
        controller_filter: Can filter by controller
        tag_filter: Can filter by tags (honouring tag_query_mode)
    """

    key_prefix: bool = False
    controller_filter: bool = False
    tag_filter: bool = False


@dataclass(frozen=True)
class RecordQuery:
    """Selection of records from the store.

    Exactly one of ``key`` / ``key_prefix`` may be set; with neither the
    query is a protocol-wide scan paged by ``limit``/``skip``.

    Attributes:
        key: Exact record key
        key_prefix: Record key prefix (requires capability)
        controller: Only records written by this controller
        tags: Only records carrying these tags
        tag_query_mode: any-of or all-of tag matching
        limit: Page size for scans
        skip: Offset for scans
        sort_order: Scan order
        history: Include prior values
    """

    key: Optional[str] = None
    key_prefix: Optional[str] = None
    controller: Optional[str] = None
    tags: Optional[List[str]] = None
    tag_query_mode: TagQueryMode = TagQueryMode.ANY
    limit: Optional[int] = None
    skip: int = 0
    sort_order: SortOrder = SortOrder.ASC
    history: bool = False

    def __post_init__(self) -> None:
        if self.key is not None and self.key_prefix is not None:
            raise ValueError("RecordQuery accepts key or key_prefix, not both")


@dataclass
class Record:
    """A record returned by the store.

    Attributes:
        key: Physical record key
        value: Current serialized value
        controller: Identity key that wrote the record
        history: Prior serialized values (only when requested)
        history_order: Direction of ``history``
        txid: Identifier of the current version
    """

    key: str
    value: str
    controller: Optional[str] = None
    history: List[str] = field(default_factory=list)
    history_order: HistoryOrder = HistoryOrder.NEWEST_FIRST
    txid: Optional[str] = None

    def history_newest_first(self) -> List[str]:
        if self.history_order == HistoryOrder.OLDEST_FIRST:
            return list(reversed(self.history))
        return list(self.history)


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for versioned keyed record stores.

    Example:
        >>> store = InMemoryRecordStore(controller="02ab...")
        >>> txid = await store.set("entry/2025-10-06/143022-456abcd", value)
        >>> records = await store.get(RecordQuery(key="entry/2025-10-06/143022-456abcd"))
    """

    @property
    @abstractmethod
    def capabilities(self) -> StoreCapabilities:
        """Server-side query features of this store."""
        ...

    @abstractmethod
    async def get(self, query: RecordQuery) -> List[Record]:
        """Fetch records matching a query.

        Raises:
            StoreError: If the store cannot be read
        """
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        *,
        tags: Optional[List[str]] = None,
    ) -> str:
        """Write a new version of ``key``.

        Returns:
            txid of the new version

        Raises:
            StoreError: If the write fails
        """
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove the current version of ``key``.

        Raises:
            RecordNotFoundError: If the key has no current version
            StoreError: For other failures
        """
        ...
