"""
Data model for the Gloss SDK.

This module defines:
- LogEntry: canonical, immutable log entry
- DayChain: legacy container holding one author's entries for a day
- CreateLogOptions / QueryOptions / UploadOptions: call options
- UploadResult: outcome of publishing a binary asset

Invariants:
    - LogEntry.key never changes across updates of the same logical entry
    - LogEntry.controller is set once at creation
    - txid is only populated when a query asks for it
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .keys import date_of


class TagQueryMode(str, Enum):
    """How a tag filter is matched against an entry's tags."""

    ANY = "any"
    ALL = "all"


class SortOrder(str, Enum):
    """Key order of query results."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class LogEntry:
    """A single developer log entry.

    Attributes:
        key: Log key (YYYY-MM-DD/HHmmss-SSSxxxx)
        at: ISO-8601 UTC timestamp of this version
        text: Log message
        tags: Optional tags for categorization
        assets: Optional URLs of attached assets
        controller: Identity key of the author
        txid: Version identifier of the record, when requested
    """

    key: str
    at: str
    text: str
    tags: tuple[str, ...] | None = None
    assets: tuple[str, ...] | None = None
    controller: str | None = None
    txid: str | None = None

    @property
    def day(self) -> str:
        return date_of(self.key)

    def with_txid(self, txid: str | None) -> LogEntry:
        return replace(self, txid=txid)

    def without_txid(self) -> LogEntry:
        if self.txid is None:
            return self
        return replace(self, txid=None)

    def to_dict(self) -> dict[str, Any]:
        """Canonical field mapping, omitting unset optional fields."""
        data: dict[str, Any] = {"key": self.key, "at": self.at, "text": self.text}
        if self.tags is not None:
            data["tags"] = list(self.tags)
        if self.assets is not None:
            data["assets"] = list(self.assets)
        if self.controller is not None:
            data["controller"] = self.controller
        if self.txid is not None:
            data["txid"] = self.txid
        return data


@dataclass
class DayChain:
    """Legacy day bucket: all of one author's entries for a date.

    Attributes:
        key: Day (YYYY-MM-DD)
        logs: Entries for the day
    """

    key: str
    logs: list[LogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "logs": [entry.to_dict() for entry in self.logs]}


@dataclass(frozen=True)
class CreateLogOptions:
    """Options for creating or updating a log entry.

    Attributes:
        tags: Tags for the entry (None inherits on update)
        assets: Asset URLs for the entry (None inherits on update)
    """

    tags: list[str] | None = None
    assets: list[str] | None = None


@dataclass(frozen=True)
class QueryOptions:
    """Options for listing a day's entries.

    Attributes:
        controller: Only entries authored by this identity key
        tags: Tag filter
        tag_query_mode: any-of (default) or all-of tag matching
        limit: Results returned after filtering; None or <= 0 means no limit
        skip: Results skipped after filtering and sorting
        sort_order: Key order of results
        page_size: Rows per store page during a protocol scan
        max_pages: Hard cap on store pages scanned
        include_txid: Attach the record's txid to current entries
    """

    controller: str | None = None
    tags: list[str] | None = None
    tag_query_mode: TagQueryMode = TagQueryMode.ANY
    limit: int | None = None
    skip: int = 0
    sort_order: SortOrder = SortOrder.ASC
    page_size: int | None = None
    max_pages: int | None = None
    include_txid: bool = False


@dataclass(frozen=True)
class UploadOptions:
    """Options for publishing an asset.

    Attributes:
        storage_url: Storage service base URL (settings default when None)
        retention_minutes: How long the asset is hosted
    """

    storage_url: str | None = None
    retention_minutes: int | None = None


@dataclass(frozen=True)
class UploadResult:
    """Result of publishing an asset.

    Attributes:
        url: URL of the published asset
        published: Whether the storage service confirmed publication
    """

    url: str
    published: bool = True
