"""
Entry codec for the Gloss SDK.

Stored values have gone through several JSON shapes over time. Decoding
classifies a parsed value into a RecordShape and hands it to the branch for
that shape:

    ENTRY      {"key": "2025-10-06/143022-456abcd", "at": ..., "text": ...}
    DAY_CHAIN  {"key": "2025-10-06", "logs": [{...}, {...}]}
    FLAT       {"at": ..., "text": ...}                (no key)
    UNKNOWN    anything else, including invalid JSON

Invariants:
    - decode never raises on bad input; malformed values decode to nothing
    - The physical record's controller wins over an embedded controller
    - Non-string tag/asset elements are dropped, the entry is kept
    - encode() output is byte-identical for equal entries

How to change safely:
    - Add a new shape as a new RecordShape member and a new branch
    - Never change how an existing branch reads already-written data
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from .errors import MalformedRecordError
from .keys import (
    DISAMBIGUATOR_ALPHABET,
    DISAMBIGUATOR_LENGTH,
    KEY_SEPARATOR,
    day_of,
    derive_key,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from .types import DayChain, LogEntry

logger = logging.getLogger(__name__)


class RecordShape(Enum):
    """Known on-disk shapes of a stored value."""

    ENTRY = "entry"
    DAY_CHAIN = "day_chain"
    FLAT = "flat"
    UNKNOWN = "unknown"


@dataclass
class DecodeStats:
    """Counters describing what the codec has seen.

    Attributes:
        decoded: Entries successfully produced
        malformed: Values that decoded to no entry at all
        dropped_elements: Individual day-chain elements that were skipped
    """

    decoded: int = 0
    malformed: int = 0
    dropped_elements: int = 0

    def reset(self) -> None:
        self.decoded = 0
        self.malformed = 0
        self.dropped_elements = 0


def classify(parsed: Any) -> RecordShape:
    """Pick the shape of an already-parsed JSON value."""
    if not isinstance(parsed, dict):
        return RecordShape.UNKNOWN
    if isinstance(parsed.get("logs"), list):
        return RecordShape.DAY_CHAIN
    if isinstance(parsed.get("key"), str) and parsed["key"]:
        return RecordShape.ENTRY
    return RecordShape.FLAT


def _string_list(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, list):
        return None
    return tuple(item for item in value if isinstance(item, str))


def _dumps(data: dict[str, Any]) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _content_disambiguator(raw: dict[str, Any]) -> str:
    """Stable 4-char suffix derived from the object's content."""
    digest = hashlib.sha256(
        json.dumps(raw, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
    ).digest()
    number = int.from_bytes(digest[:8], "big")
    chars = []
    for _ in range(DISAMBIGUATOR_LENGTH):
        number, index = divmod(number, len(DISAMBIGUATOR_ALPHABET))
        chars.append(DISAMBIGUATOR_ALPHABET[index])
    return "".join(chars)


class EntryCodec:
    """Serializes canonical entries and decodes every known stored shape.

    Example:
        >>> codec = EntryCodec()
        >>> raw = codec.encode(entry)
        >>> codec.decode(raw, fallback_controller="02ab...") == entry
        True
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self.stats = DecodeStats()
        self._branches: dict[RecordShape, Callable[[dict[str, Any], str | None], list[LogEntry]]] = {
            RecordShape.ENTRY: self._decode_entry,
            RecordShape.DAY_CHAIN: self._decode_day_chain,
            RecordShape.FLAT: self._decode_flat,
        }

    def fork(self) -> EntryCodec:
        """A codec with the same clock and its own, fresh stats."""
        return EntryCodec(clock=self._clock)

    def encode(self, entry: LogEntry) -> bytes:
        """Serialize the canonical fields of an entry (txid excluded)."""
        return _dumps(entry.without_txid().to_dict())

    def encode_chain(self, chain: DayChain) -> bytes:
        """Serialize a legacy day bucket (txids excluded)."""
        logs = [entry.without_txid() for entry in chain.logs]
        return _dumps(DayChain(key=chain.key, logs=logs).to_dict())

    def decode(self, raw: bytes | str, fallback_controller: str | None = None) -> LogEntry | None:
        """Decode a stored value to its first entry, or None."""
        entries = self.decode_entries(raw, fallback_controller)
        return entries[0] if entries else None

    def decode_entries(
        self,
        raw: bytes | str | None,
        fallback_controller: str | None = None,
    ) -> list[LogEntry]:
        """Decode a stored value to zero or more entries.

        Args:
            raw: Stored value
            fallback_controller: Controller declared by the physical record

        Returns:
            Decoded entries; empty when the value is malformed
        """
        try:
            parsed = self._parse(raw)
            shape = classify(parsed)
            branch = self._branches.get(shape)
            if branch is None:
                raise MalformedRecordError("Unrecognized record shape", reason=shape.value)
            entries = branch(parsed, fallback_controller)
            if not entries:
                raise MalformedRecordError("Record holds no usable entry", reason=shape.value)
        except MalformedRecordError as e:
            self.stats.malformed += 1
            logger.debug(
                "Skipping malformed record value",
                extra={"reason": e.reason, "error": e.message},
            )
            return []
        except Exception as e:
            # No stored value may break a read.
            self.stats.malformed += 1
            logger.warning(
                "Unexpected error decoding record value",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return []

        self.stats.decoded += len(entries)
        return entries

    def _parse(self, raw: bytes | str | None) -> Any:
        if raw is None:
            raise MalformedRecordError("Record has no value", reason="empty")
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8")
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
            raise MalformedRecordError(f"Invalid JSON: {e}", reason="json") from e

    def _decode_entry(self, raw: dict[str, Any], controller: str | None) -> list[LogEntry]:
        entry = self._normalize(raw, controller)
        return [entry] if entry else []

    def _decode_day_chain(self, raw: dict[str, Any], controller: str | None) -> list[LogEntry]:
        chain_day = raw.get("key") if isinstance(raw.get("key"), str) else None
        entries = []
        for element in raw["logs"]:
            entry = self._normalize(element, controller, default_day=chain_day)
            if entry is None:
                self.stats.dropped_elements += 1
                continue
            entries.append(entry)
        return entries

    def _decode_flat(self, raw: dict[str, Any], controller: str | None) -> list[LogEntry]:
        entry = self._normalize(raw, controller)
        return [entry] if entry else []

    def _normalize(
        self,
        raw: Any,
        controller: str | None,
        default_day: str | None = None,
    ) -> LogEntry | None:
        if not isinstance(raw, dict):
            return None

        text = raw.get("text")
        if not isinstance(text, str) or not text:
            return None

        at = raw.get("at") if isinstance(raw.get("at"), str) and raw.get("at") else None
        moment = parse_timestamp(at) if at else None
        if at is None:
            moment = self._clock()
            at = format_timestamp(moment)

        key = raw.get("key") if isinstance(raw.get("key"), str) else ""
        if not key:
            day = default_day if default_day and KEY_SEPARATOR not in default_day else None
            base = moment or self._clock()
            key = derive_key(day or day_of(base), base, _content_disambiguator(raw))
        elif KEY_SEPARATOR not in key:
            # Legacy time-only key; the day comes from the timestamp.
            key = f"{at[:10]}{KEY_SEPARATOR}{key}"

        embedded = raw.get("controller") if isinstance(raw.get("controller"), str) else None
        owner = controller or embedded or None

        return LogEntry(
            key=key,
            at=at,
            text=text,
            tags=_string_list(raw.get("tags")),
            assets=_string_list(raw.get("assets")),
            controller=owner,
        )
