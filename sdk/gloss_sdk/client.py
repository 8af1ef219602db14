"""
Gloss Client for Python SDK.

This module provides the main client interface:
- GlossClient: create, list, update, remove and trace log entries

Example:
    >>> store = InMemoryRecordStore(controller="02ab...")
    >>> async with GlossClient(store, StaticIdentityProvider("02ab...")) as gloss:
    ...     await gloss.log("Fixed authentication bug", CreateLogOptions(tags=["auth"]))
    ...     entries = await gloss.list_today()

Invariants:
    - The identity key is fetched lazily and cached for the client lifetime
    - Reads see whatever snapshot the store returns; there is no global order
    - Mutations are only ever applied to the caller's own entries
"""

from __future__ import annotations

import logging
from typing import Any

from .assets import BlobPublisher, HttpBlobPublisher
from .chain import ChainReconstructor
from .codec import EntryCodec
from .config import Settings
from .history import HistoryResolver
from .identity import CachedIdentity, IdentityProvider
from .keys import today
from .mutator import Mutator
from .query import QueryEngine
from .store.base import RecordStore
from .types import CreateLogOptions, LogEntry, QueryOptions, UploadOptions, UploadResult

logger = logging.getLogger(__name__)


class GlossClient:
    """Client for globally discoverable developer logs.

    Every entry is an individual record in the store, which enables:
    - Individual entry removal
    - Updates that keep earlier versions in the record history
    - Discovery of every author's entries for a day

    Attributes:
        store: Versioned keyed record store
        settings: SDK settings
        codec: Entry codec shared by all components
        engine: Day listing engine
        history: Version history resolver
        mutator: Owner-checked writes
    """

    def __init__(
        self,
        store: RecordStore,
        identity: IdentityProvider,
        *,
        publisher: BlobPublisher | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize client.

        Args:
            store: Record store to read and write
            identity: Provider of the caller's controller key
            publisher: Asset publisher (HTTP publisher from settings if omitted)
            settings: SDK settings (loaded from env if omitted)
        """
        self.store = store
        self.settings = settings or Settings()
        self._identity = CachedIdentity(identity)
        self._publisher = publisher
        self._owns_publisher = False

        self.codec = EntryCodec()
        self.engine = QueryEngine(
            store,
            ChainReconstructor(self.codec),
            page_size=self.settings.page_size,
            max_pages=self.settings.max_pages,
        )
        self.history = HistoryResolver(store, self.codec)
        self.mutator = Mutator(store, self.engine, self.codec)

    async def __aenter__(self) -> GlossClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the asset publisher if the client created it."""
        if self._owns_publisher and isinstance(self._publisher, HttpBlobPublisher):
            await self._publisher.close()
            self._publisher = None
            self._owns_publisher = False

    async def identity_key(self) -> str:
        """The caller's controller key (fetched once, then cached)."""
        return await self._identity.get()

    async def log(self, text: str, options: CreateLogOptions | None = None) -> LogEntry:
        """Create a new log entry stamped with the current UTC time.

        Args:
            text: The log message
            options: Optional tags and assets

        Returns:
            The created entry
        """
        controller = await self.identity_key()
        return await self.mutator.create(text, controller, options)

    async def get(self, day: str) -> list[LogEntry]:
        """All entries for a UTC day. Alias for list_day(day)."""
        return await self.list_day(day)

    async def list_day(self, day: str, options: QueryOptions | None = None) -> list[LogEntry]:
        """List entries for a UTC day from all authors.

        Args:
            day: YYYY-MM-DD (UTC)
            options: Filters and pagination (see QueryOptions)

        Returns:
            Entries sorted by key (chronological in UTC)
        """
        return await self.engine.list_day(day, options)

    async def list_today(self, options: QueryOptions | None = None) -> list[LogEntry]:
        """List today's entries (UTC) from all authors."""
        return await self.list_day(today(), options)

    async def update_entry(
        self,
        key: str,
        new_text: str,
        options: CreateLogOptions | None = None,
    ) -> LogEntry | None:
        """Replace the text of one of the caller's entries.

        The previous version stays in the record history.

        Returns:
            The updated entry, or None if not found or not owned
        """
        controller = await self.identity_key()
        return await self.mutator.update(key, new_text, controller, options)

    async def remove_entry(self, key: str) -> bool:
        """Remove one of the caller's entries by its full key.

        Returns:
            True if removed; False if not found, not owned or the store failed
        """
        controller = await self.identity_key()
        return await self.mutator.remove(key, controller)

    async def remove_day(self, day: str) -> bool:
        """Remove all of the caller's entries for a UTC day.

        Returns:
            True if any entry was removed
        """
        controller = await self.identity_key()
        return await self.mutator.remove_all(day, controller)

    async def get_log_history(self, key: str) -> list[LogEntry]:
        """Every version of an entry, newest first."""
        return await self.history.get_history(key)

    async def upload_asset(
        self,
        data: bytes,
        mime_type: str,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        """Upload an asset and return its URL.

        Args:
            data: Asset bytes
            mime_type: MIME type of the asset
            options: Storage URL and retention (minutes) overrides
        """
        options = options or UploadOptions()
        publisher = self._get_publisher()
        return await publisher.publish(
            data,
            mime_type,
            retention_minutes=options.retention_minutes or self.settings.retention_minutes,
            storage_url=options.storage_url,
        )

    async def log_with_asset(
        self,
        text: str,
        data: bytes,
        mime_type: str,
        options: CreateLogOptions | None = None,
        upload: UploadOptions | None = None,
    ) -> LogEntry:
        """Upload an asset, then create an entry referencing it."""
        options = options or CreateLogOptions()
        result = await self.upload_asset(data, mime_type, upload)
        return await self.log(
            text,
            CreateLogOptions(
                tags=options.tags,
                assets=[*(options.assets or []), result.url],
            ),
        )

    def _get_publisher(self) -> BlobPublisher:
        if self._publisher is None:
            self._publisher = HttpBlobPublisher(
                storage_url=self.settings.storage_url,
                timeout=self.settings.upload_timeout,
            )
            self._owns_publisher = True
        return self._publisher
