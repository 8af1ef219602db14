"""
Version history for a single logical entry.

The entry's own record and its legacy day bucket are both read with
history. Every decodable version whose key equals the requested key is
returned, newest first.

Invariants:
    - The store's history direction is never trusted; results are always
      re-sorted by ``at``
    - Ties and unreadable timestamps fall back to reverse key order
    - Identical versions seen through several records are reported once
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from .codec import EntryCodec
from .keys import date_of, day_record_key, parse_timestamp, record_key
from .store.base import Record, RecordQuery, RecordStore
from .types import LogEntry

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _version_sort_key(entry: LogEntry) -> tuple[datetime, str]:
    moment = parse_timestamp(entry.at) if entry.at else None
    return (moment or _EPOCH, entry.key)


class HistoryResolver:
    """Rebuilds the chronological version list of one log entry.

    Example:
        >>> resolver = HistoryResolver(store)
        >>> versions = await resolver.get_history("2025-10-06/143022-456abcd")
        >>> versions[0].text  # latest
    """

    def __init__(self, store: RecordStore, codec: EntryCodec | None = None) -> None:
        self.store = store
        self.codec = codec or EntryCodec()

    async def get_history(self, key: str) -> List[LogEntry]:
        """Return every version of ``key``, newest first.

        Args:
            key: Log key (e.g. "2025-10-06/143022-456abcd")

        Returns:
            Versions sorted by ``at`` descending; empty if none decode

        Raises:
            MalformedKeyError: If the key has no date segment
            StoreError: If the store cannot be read
        """
        day = date_of(key)
        records: List[Record] = []
        for physical in (record_key(key), day_record_key(day)):
            records.extend(await self.store.get(RecordQuery(key=physical, history=True)))

        versions: List[LogEntry] = []
        seen: set[tuple] = set()
        for record in records:
            for value in [record.value, *record.history]:
                for entry in self.codec.decode_entries(value, record.controller):
                    if entry.key != key:
                        continue
                    identity = (entry.at, entry.text, entry.tags, entry.assets, entry.controller)
                    if identity in seen:
                        continue
                    seen.add(identity)
                    versions.append(entry)

        versions.sort(key=_version_sort_key, reverse=True)
        logger.debug("Resolved history", extra={"entry_key": key, "versions": len(versions)})
        return versions
