"""
Versioned keyed record store abstraction for the Gloss SDK.

This module provides the store interface consumed by the query engine and
the mutator, plus an in-memory backend:
- RecordStore protocol and query/record types
- InMemoryRecordStore (for testing and local development)

Invariants:
    - Every write creates a new version of its key
    - History direction is declared per record, never assumed
    - The store owns persistence; the SDK owns interpretation
"""

from .base import (
    HistoryOrder,
    Record,
    RecordQuery,
    RecordStore,
    StoreCapabilities,
)
from .memory import InMemoryRecordStore

__all__ = [
    # Protocol and types
    "RecordStore",
    "Record",
    "RecordQuery",
    "StoreCapabilities",
    "HistoryOrder",
    # Implementations
    "InMemoryRecordStore",
]
