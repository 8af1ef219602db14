"""
Chain reconstruction for the Gloss SDK.

Turns a batch of physical records (current value plus optional history) into
the de-duplicated set of logical entries for one day.

Visiting order decides which copy of a logical entry survives:
    1. Current values before any history
    2. Within each pass, records addressing a single entry before day buckets
    3. Within a record's history, newest version first

Invariants:
    - The output holds at most one entry per distinct key
    - Entries whose date prefix differs from the requested day are dropped
    - A malformed value never prevents the rest of the batch from decoding
"""

from __future__ import annotations

import logging
from typing import Iterable

from .codec import EntryCodec
from .keys import KEY_SEPARATOR, is_entry_record_key
from .store.base import Record
from .types import LogEntry

logger = logging.getLogger(__name__)


class ChainReconstructor:
    """Rebuilds logical entries from physical records.

    Example:
        >>> reconstructor = ChainReconstructor(EntryCodec())
        >>> entries = reconstructor.reconstruct(records, "2025-10-06")
    """

    def __init__(self, codec: EntryCodec | None = None) -> None:
        self.codec = codec or EntryCodec()

    def reconstruct(
        self,
        records: Iterable[Record],
        day: str | None,
        *,
        include_history: bool = True,
        include_txid: bool = False,
    ) -> list[LogEntry]:
        """Merge current and historical values into logical entries.

        Args:
            records: Physical records from the store
            day: Requested day; None keeps every day
            include_history: Also decode historical values
            include_txid: Attach the record txid to current-value entries

        Returns:
            Entries in first-seen order, one per key
        """
        ordered = sorted(records, key=lambda r: 0 if is_entry_record_key(r.key) else 1)
        seen: dict[str, LogEntry] = {}

        for record in ordered:
            for entry in self.codec.decode_entries(record.value, record.controller):
                if include_txid and record.txid:
                    entry = entry.with_txid(record.txid)
                self._keep_first(seen, entry, day)

        if include_history:
            for record in ordered:
                for past in record.history_newest_first():
                    for entry in self.codec.decode_entries(past, record.controller):
                        self._keep_first(seen, entry, day)

        return list(seen.values())

    @staticmethod
    def _keep_first(seen: dict[str, LogEntry], entry: LogEntry, day: str | None) -> None:
        if entry.key in seen:
            return
        if day is not None and entry.key.split(KEY_SEPARATOR, 1)[0] != day:
            logger.debug(
                "Dropping entry outside requested day",
                extra={"entry_key": entry.key, "day": day},
            )
            return
        seen[entry.key] = entry
