"""Timestamp encoding for the relational message log.

New rows are always written with ``CANONICAL_FORMAT``. Rows written by older
relay versions used other text representations, so reads walk
``DECODE_FORMATS`` in order and take the first one that parses.
"""

from datetime import datetime
from datetime import timezone
import re

from topicrelay.errors import StoreError

CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

DECODE_FORMATS = (
    CANONICAL_FORMAT,
    # v1: RFC 3339 with offset, optional fraction
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    # v1: SQL driver default, space separated with offset
    "%Y-%m-%d %H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S%z",
    # v1: debug string form, e.g. "2024-05-01 10:00:00.5 +0000 UTC"
    "%Y-%m-%d %H:%M:%S.%f %z %Z",
    "%Y-%m-%d %H:%M:%S %z %Z",
    # v0: SQLite CURRENT_TIMESTAMP, naive UTC
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)

# strptime's %f takes at most six digits; older writers stored nanoseconds
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


def encode(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(CANONICAL_FORMAT)


def now() -> str:
    return encode(datetime.now(timezone.utc))


def decode(value: str) -> datetime:
    text = _LONG_FRACTION.sub(r"\1", value.strip())
    for fmt in DECODE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    raise StoreError(f"Unrecognised timestamp format: {value!r}")
