"""
Gloss Python SDK - Globally discoverable developer logs.

This SDK stores developer log entries in a versioned keyed record store and
rebuilds a consistent view of them on read:
- Key scheme that sorts chronologically
- Codec for every historical on-disk entry shape
- Day listing with owner/tag filters, ordering and pagination
- Version history of individual entries
- Owner-checked create/update/remove

Example:
    >>> from gloss_sdk import GlossClient, CreateLogOptions, QueryOptions
    >>>
    >>> async with GlossClient(store, identity) as gloss:
    ...     await gloss.log("Fixed authentication bug", CreateLogOptions(tags=["auth", "bugfix"]))
    ...     logs = await gloss.list_today(QueryOptions(tags=["auth"]))

Invariants:
    - Log keys never change once assigned
    - Only the controller that created an entry can update or remove it
    - Malformed stored values are skipped, never raised

Version: 1.0.0
"""

__version__ = "1.0.0"

from .assets import BlobPublisher, HttpBlobPublisher, InMemoryBlobPublisher
from .chain import ChainReconstructor
from .client import GlossClient
from .codec import DecodeStats, EntryCodec, RecordShape
from .config import Settings
from .errors import (
    AssetUploadError,
    GlossError,
    IdentityError,
    MalformedKeyError,
    MalformedRecordError,
    RecordNotFoundError,
    StoreError,
    ValidationError,
)
from .history import HistoryResolver
from .identity import IdentityProvider, StaticIdentityProvider
from .keys import date_of, derive_key, next_key
from .mutator import Mutator
from .query import QueryEngine, ScanCursor, ScanStopReason, matches_tag_filter
from .store import (
    HistoryOrder,
    InMemoryRecordStore,
    Record,
    RecordQuery,
    RecordStore,
    StoreCapabilities,
)
from .types import (
    CreateLogOptions,
    DayChain,
    LogEntry,
    QueryOptions,
    SortOrder,
    TagQueryMode,
    UploadOptions,
    UploadResult,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "GlossClient",
    "Settings",
    # Data model
    "LogEntry",
    "DayChain",
    "CreateLogOptions",
    "QueryOptions",
    "UploadOptions",
    "UploadResult",
    "SortOrder",
    "TagQueryMode",
    # Engine
    "EntryCodec",
    "DecodeStats",
    "RecordShape",
    "ChainReconstructor",
    "QueryEngine",
    "ScanCursor",
    "ScanStopReason",
    "HistoryResolver",
    "Mutator",
    "matches_tag_filter",
    "derive_key",
    "next_key",
    "date_of",
    # Collaborators
    "RecordStore",
    "Record",
    "RecordQuery",
    "StoreCapabilities",
    "HistoryOrder",
    "InMemoryRecordStore",
    "IdentityProvider",
    "StaticIdentityProvider",
    "BlobPublisher",
    "HttpBlobPublisher",
    "InMemoryBlobPublisher",
    # Errors
    "GlossError",
    "MalformedKeyError",
    "MalformedRecordError",
    "ValidationError",
    "StoreError",
    "RecordNotFoundError",
    "IdentityError",
    "AssetUploadError",
]
