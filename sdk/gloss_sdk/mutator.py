"""
Create, update and remove operations for the Gloss SDK.

Every entry is its own physical record at ``entry/{key}``. An update writes
a new version of that record, so the previous version stays reachable
through the record's history. New entries and updates never go into a
legacy day bucket.

Removal destroys one logical entry wherever the caller holds it: the entry
record is removed, and a copy in the caller's own day bucket is dropped by
writing a new bucket version without it (or removing the bucket once empty).

Invariants:
    - The controller is stamped from the caller's identity at creation and
      never changes afterwards
    - Update and remove always re-read the caller's current entries first
    - "Not found" and "owned by someone else" are the same result
    - Removal failures in the store are reported as False, never raised
    - remove() returning True means the key no longer lists
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from .codec import EntryCodec
from .errors import RecordNotFoundError, ValidationError
from .keys import date_of, day_record_key, format_timestamp, next_key, record_key, utcnow
from .query import QueryEngine
from .store.base import RecordQuery, RecordStore
from .types import CreateLogOptions, DayChain, LogEntry

logger = logging.getLogger(__name__)


def _check_strings(values: Optional[List[str]], field_name: str) -> Optional[tuple[str, ...]]:
    if values is None:
        return None
    if not all(isinstance(v, str) for v in values):
        raise ValidationError(f"All {field_name} must be strings", field_name=field_name)
    return tuple(values)


class Mutator:
    """Applies owner-checked writes to the record store.

    Attributes:
        store: Record store to write to
        engine: Query engine used to re-read the caller's entries
        codec: Entry serializer

    Example:
        >>> mutator = Mutator(store, QueryEngine(store))
        >>> entry = await mutator.create("Fixed auth bug", "02ab...", CreateLogOptions(tags=["auth"]))
        >>> await mutator.update(entry.key, "Fixed auth bug (for real)", "02ab...")
    """

    def __init__(
        self,
        store: RecordStore,
        engine: QueryEngine,
        codec: EntryCodec | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.engine = engine
        self.codec = codec or EntryCodec()
        self._clock = clock

    async def create(
        self,
        text: str,
        controller: str,
        options: CreateLogOptions | None = None,
    ) -> LogEntry:
        """Create a new entry stamped with ``controller``.

        Raises:
            ValidationError: If text is empty or tags/assets are not strings
            StoreError: If the write fails
        """
        if not isinstance(text, str) or not text:
            raise ValidationError("Log text must be a non-empty string", field_name="text")
        options = options or CreateLogOptions()

        now = self._clock()
        entry = LogEntry(
            key=next_key(now),
            at=format_timestamp(now),
            text=text,
            tags=_check_strings(options.tags, "tags") or (),
            assets=_check_strings(options.assets, "assets") or (),
            controller=controller,
        )
        await self._write(entry)
        logger.info("Log entry created", extra={"entry_key": entry.key})
        return entry

    async def update(
        self,
        key: str,
        new_text: str,
        controller: str,
        options: CreateLogOptions | None = None,
    ) -> LogEntry | None:
        """Write a new version of an entry the caller owns.

        Args:
            key: Log key of the entry
            new_text: Replacement text
            controller: Caller's identity key
            options: Tags/assets; None fields inherit from the current version

        Returns:
            The new version, or None if not found or not owned

        Raises:
            ValidationError: If new_text is empty
            StoreError: If reading or writing fails
        """
        if not isinstance(new_text, str) or not new_text:
            raise ValidationError("Log text must be a non-empty string", field_name="text")
        options = options or CreateLogOptions()

        current = await self._find_owned(key, controller)
        if current is None:
            return None

        tags = _check_strings(options.tags, "tags")
        assets = _check_strings(options.assets, "assets")
        updated = LogEntry(
            key=current.key,
            at=format_timestamp(self._clock()),
            text=new_text,
            tags=tags if tags is not None else (current.tags or ()),
            assets=assets if assets is not None else (current.assets or ()),
            controller=current.controller,
        )
        await self._write(updated)
        logger.info("Log entry updated", extra={"entry_key": key})
        return updated

    async def remove(self, key: str, controller: str) -> bool:
        """Remove one entry the caller owns.

        Drops both the entry record and any copy in the caller's legacy day
        bucket, so the key stops listing.

        Returns:
            True if removed; False if not found, not owned, or the store failed
        """
        current = await self._find_owned(key, controller)
        if current is None:
            return False
        return await self._remove_entry(current.key, controller)

    async def remove_all(self, day: str, controller: str) -> bool:
        """Remove all of the caller's entries for a day.

        Returns:
            True if at least one entry was removed
        """
        removed_any = False
        for entry in await self.engine.list_owned(day, controller):
            if await self._remove_entry(entry.key, controller):
                removed_any = True
        logger.info("Day removal finished", extra={"day": day, "removed_any": removed_any})
        return removed_any

    async def _find_owned(self, key: str, controller: str) -> LogEntry | None:
        day = date_of(key)
        if not controller:
            return None
        for entry in await self.engine.list_owned(day, controller):
            if entry.key == key and entry.controller == controller:
                return entry
        return None

    async def _write(self, entry: LogEntry) -> None:
        value = self.codec.encode(entry).decode("utf-8")
        tags = list(entry.tags) if entry.tags else None
        await self.store.set(record_key(entry.key), value, tags=tags)

    async def _remove_entry(self, key: str, controller: str) -> bool:
        try:
            from_bucket = await self._drop_from_bucket(key, controller)
            from_record = await self._remove_record(key)
        except Exception as e:
            logger.warning(
                "Store removal failed",
                extra={"entry_key": key, "error": str(e), "error_type": type(e).__name__},
            )
            return False
        removed = from_bucket or from_record
        if removed:
            logger.info(
                "Log entry removed",
                extra={"entry_key": key, "from_bucket": from_bucket, "from_record": from_record},
            )
        return removed

    async def _remove_record(self, key: str) -> bool:
        try:
            await self.store.remove(record_key(key))
        except RecordNotFoundError:
            return False
        return True

    async def _drop_from_bucket(self, key: str, controller: str) -> bool:
        """Rewrite the caller's day bucket without ``key``.

        Returns:
            True if the bucket held the entry
        """
        day = date_of(key)
        bucket_key = day_record_key(day)
        for record in await self.store.get(RecordQuery(key=bucket_key)):
            if record.controller != controller:
                continue
            logs = self.codec.decode_entries(record.value, record.controller)
            remaining = [entry for entry in logs if entry.key != key]
            if len(remaining) == len(logs):
                return False
            if remaining:
                value = self.codec.encode_chain(DayChain(key=day, logs=remaining))
                await self.store.set(
                    bucket_key,
                    value.decode("utf-8"),
                    tags=_collect_tags(remaining) or None,
                )
            else:
                await self.store.remove(bucket_key)
            return True
        return False


def _collect_tags(entries: List[LogEntry]) -> List[str]:
    tags: List[str] = []
    for entry in entries:
        for tag in entry.tags or ():
            if tag.strip() and tag not in tags:
                tags.append(tag)
    return tags
