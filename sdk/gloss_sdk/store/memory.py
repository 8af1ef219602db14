"""
In-memory record store implementation for testing.

This module provides a versioned keyed record store that lives in memory:
- Unit tests
- Integration tests
- Local development without a network

Invariants:
    - All data is lost on process exit
    - Each set() appends a version; history is kept per (key, controller)
    - Records written by different controllers under the same key are
      independent, like independent outputs of a global key-value protocol

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with RecordStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import RecordNotFoundError, StoreError
from ..types import SortOrder, TagQueryMode
from .base import HistoryOrder, Record, RecordQuery, StoreCapabilities

logger = logging.getLogger(__name__)


@dataclass
class _Version:
    value: str
    txid: str
    tags: Tuple[str, ...] = ()


@dataclass
class _Chain:
    """All versions written under one (key, controller)."""

    key: str
    controller: str
    seq: int
    versions: List[_Version] = field(default_factory=list)
    removed: bool = False

    @property
    def current(self) -> _Version:
        return self.versions[-1]


@dataclass
class _SharedState:
    """Data shared by every controller handle of one store."""

    chains: Dict[Tuple[str, str], _Chain] = field(default_factory=dict)
    seq: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    failures: Dict[str, Exception] = field(default_factory=dict)
    get_calls: List[RecordQuery] = field(default_factory=list)

    def next_seq(self) -> int:
        self.seq += 1
        return self.seq


class InMemoryRecordStore:
    """In-memory implementation of RecordStore.

    The store is shared by every client in a test; each client writes as the
    controller it was given, mirroring how an authenticated wallet writes.

    Attributes:
        controller: Identity key attached to writes from this handle
        capabilities: Advertised server-side query features

    Example:
        >>> backing = InMemoryRecordStore(controller="alice")
        >>> bob = backing.as_controller("bob")
        >>> await bob.set("entry/2025-10-06/143022-456abcd", "{...}")
    """

    def __init__(
        self,
        controller: str = "anonymous",
        capabilities: StoreCapabilities | None = None,
        history_order: HistoryOrder = HistoryOrder.NEWEST_FIRST,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            controller: Identity key used for writes and removals
            capabilities: Query features to advertise (none by default)
            history_order: Direction history lists are returned in
        """
        self.controller = controller
        self._capabilities = capabilities or StoreCapabilities()
        self.history_order = history_order
        self._state = _SharedState()

    @property
    def capabilities(self) -> StoreCapabilities:
        return self._capabilities

    def as_controller(self, controller: str) -> InMemoryRecordStore:
        """Return a handle sharing this store's data but writing as ``controller``."""
        other = InMemoryRecordStore(
            controller=controller,
            capabilities=self._capabilities,
            history_order=self.history_order,
        )
        other._state = self._state
        return other

    async def get(self, query: RecordQuery) -> List[Record]:
        self._maybe_fail("get")
        self._state.get_calls.append(query)
        if query.key_prefix is not None and not self._capabilities.key_prefix:
            raise StoreError("Store does not support key prefix queries", operation="get")

        async with self._state.lock:
            chains = [c for c in self._state.chains.values() if not c.removed]
            chains = [c for c in chains if self._matches(c, query)]

            chains.sort(key=lambda c: c.seq, reverse=query.sort_order == SortOrder.DESC)
            skip = max(0, query.skip)
            if query.limit is not None and query.limit > 0:
                chains = chains[skip:skip + query.limit]
            else:
                chains = chains[skip:]

            records = [self._to_record(c, query.history) for c in chains]

        logger.debug(
            "In-memory store query",
            extra={"key": query.key, "prefix": query.key_prefix, "returned": len(records)},
        )
        return records

    async def set(self, key: str, value: str, *, tags: Optional[List[str]] = None) -> str:
        self._maybe_fail("set")
        async with self._state.lock:
            chain = self._state.chains.get((key, self.controller))
            if chain is None or chain.removed:
                chain = _Chain(key=key, controller=self.controller, seq=self._state.next_seq())
                self._state.chains[(key, self.controller)] = chain
            txid = self._make_txid(key, len(chain.versions), value)
            chain.versions.append(_Version(value=value, txid=txid, tags=tuple(tags or ())))
        return txid

    async def remove(self, key: str) -> None:
        self._maybe_fail("remove")
        async with self._state.lock:
            chain = self._state.chains.get((key, self.controller))
            if chain is None or chain.removed:
                raise RecordNotFoundError(key)
            chain.removed = True

    def _matches(self, chain: _Chain, query: RecordQuery) -> bool:
        if query.key is not None and chain.key != query.key:
            return False
        if query.key_prefix is not None and not chain.key.startswith(query.key_prefix):
            return False
        if query.controller is not None and self._capabilities.controller_filter:
            if chain.controller != query.controller:
                return False
        if query.tags and self._capabilities.tag_filter:
            have = set(chain.current.tags)
            wanted = set(query.tags)
            if query.tag_query_mode == TagQueryMode.ALL:
                return wanted <= have
            return bool(wanted & have)
        return True

    def _to_record(self, chain: _Chain, with_history: bool) -> Record:
        history: List[str] = []
        if with_history:
            history = [v.value for v in chain.versions[:-1]]
            if self.history_order == HistoryOrder.NEWEST_FIRST:
                history.reverse()
        return Record(
            key=chain.key,
            value=chain.current.value,
            controller=chain.controller,
            history=history,
            history_order=self.history_order,
            txid=chain.current.txid,
        )

    @staticmethod
    def _make_txid(key: str, index: int, value: str) -> str:
        return hashlib.sha256(f"{key}:{index}:{value}".encode("utf-8")).hexdigest()

    def _maybe_fail(self, operation: str) -> None:
        error = self._state.failures.get(operation)
        if error is not None:
            raise error

    # Testing helpers

    def inject_failure(self, operation: str, error: Exception | None = None) -> None:
        """Make every subsequent ``operation`` ("get", "set", "remove") raise."""
        self._state.failures[operation] = error or StoreError(
            f"Injected {operation} failure", operation=operation
        )

    def clear_failures(self) -> None:
        self._state.failures.clear()

    def put_raw(
        self,
        key: str,
        values: List[str],
        controller: str | None = None,
    ) -> None:
        """Seed a record with raw versions, oldest first (testing helper)."""
        owner = controller or self.controller
        chain = _Chain(key=key, controller=owner, seq=self._state.next_seq())
        for index, value in enumerate(values):
            chain.versions.append(_Version(value=value, txid=self._make_txid(key, index, value)))
        self._state.chains[(key, owner)] = chain

    def record_count(self, include_removed: bool = False) -> int:
        """Number of records held (testing helper)."""
        return sum(1 for c in self._state.chains.values() if include_removed or not c.removed)

    def version_count(self, key: str, controller: str | None = None) -> int:
        """Number of versions written for a key (testing helper)."""
        chain = self._state.chains.get((key, controller or self.controller))
        return len(chain.versions) if chain else 0

    @property
    def get_calls(self) -> List[RecordQuery]:
        """Queries received so far, across all handles (testing helper)."""
        return self._state.get_calls
