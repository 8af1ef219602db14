"""
Log key scheme for the Gloss SDK.

Keys identify one logical log entry and have the shape:

    YYYY-MM-DD/HHmmss-SSSxxxx

where every numeric field is UTC and zero-padded and ``xxxx`` is a random
disambiguator drawn from [0-9a-z]. Because all fields are fixed width,
lexicographic key order equals chronological order.

Physical record keys in the store prefix the log key with ``entry/``.
Legacy day buckets live at ``entry/YYYY-MM-DD``.

Invariants:
    - derive_key() never performs I/O
    - Two keys for the same millisecond collide with probability 36**-4;
      collisions are tolerated, not prevented
    - date_of() only inspects the segment before the first '/'

How to change safely:
    - Never change field widths; existing keys would stop sorting correctly
    - New physical layouts get a new prefix rather than reusing RECORD_PREFIX
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime, timezone

from .errors import MalformedKeyError

RECORD_PREFIX = "entry/"
KEY_SEPARATOR = "/"
DISAMBIGUATOR_ALPHABET = string.digits + string.ascii_lowercase
DISAMBIGUATOR_LENGTH = 4

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_of(moment: datetime) -> str:
    """Return the UTC calendar day of a moment as YYYY-MM-DD."""
    return _as_utc(moment).strftime("%Y-%m-%d")


def today() -> str:
    """Return today's UTC day string."""
    return day_of(utcnow())


def random_disambiguator() -> str:
    return "".join(secrets.choice(DISAMBIGUATOR_ALPHABET) for _ in range(DISAMBIGUATOR_LENGTH))


def derive_key(day: str, moment: datetime, disambiguator: str | None = None) -> str:
    """Build a log key for a moment within a day.

    Args:
        day: UTC day (YYYY-MM-DD) the key belongs to
        moment: Moment providing the time-of-day fields
        disambiguator: Optional fixed suffix; random when omitted

    Returns:
        Key of the form ``{day}/{HHmmss}-{SSS}{rand4}``
    """
    moment = _as_utc(moment)
    suffix = disambiguator if disambiguator is not None else random_disambiguator()
    millis = moment.microsecond // 1000
    return f"{day}{KEY_SEPARATOR}{moment:%H%M%S}-{millis:03d}{suffix}"


def next_key(moment: datetime | None = None) -> str:
    """Derive a fresh key for ``moment`` (default: now)."""
    moment = moment or utcnow()
    return derive_key(day_of(moment), moment)


def date_of(key: str) -> str:
    """Return the date segment of a log key.

    Raises:
        MalformedKeyError: If the key has no non-empty segment before '/'
    """
    day, sep, _ = key.partition(KEY_SEPARATOR)
    if not sep or not day:
        raise MalformedKeyError(f"Log key has no date segment: {key!r}", key=key)
    return day


def validate_day(day: str) -> str:
    """Check that ``day`` is a YYYY-MM-DD string and return it."""
    if not isinstance(day, str) or not _DAY_RE.match(day):
        raise MalformedKeyError(f"Expected a YYYY-MM-DD day, got {day!r}", key=day)
    try:
        datetime.strptime(day, "%Y-%m-%d")
    except ValueError as e:
        raise MalformedKeyError(f"Invalid calendar day {day!r}: {e}", key=day) from e
    return day


def record_key(entry_key: str) -> str:
    """Physical store key holding a single logical entry."""
    return f"{RECORD_PREFIX}{entry_key}"


def day_record_key(day: str) -> str:
    """Physical store key of a legacy day bucket."""
    return f"{RECORD_PREFIX}{day}"


def parse_record_key(key: str) -> str | None:
    """Strip the record prefix; None when ``key`` is not a log record key."""
    if not key.startswith(RECORD_PREFIX):
        return None
    rest = key[len(RECORD_PREFIX):]
    return rest or None


def is_entry_record_key(key: str) -> bool:
    """True when a physical key addresses one entry rather than a day bucket."""
    rest = parse_record_key(key)
    return rest is not None and KEY_SEPARATOR in rest


def format_timestamp(moment: datetime) -> str:
    """Render a moment as ISO-8601 UTC with milliseconds and a 'Z' suffix."""
    moment = _as_utc(moment)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; None when it cannot be read."""
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except (ValueError, OverflowError):
        # Offsets pushing a moment outside datetime's range overflow on conversion.
        return None
