"""Incremental ingestion: access-log timestamps and the already-ingested cutoff.

The watermark is the newest timestamp already present in the sink, in
microseconds since the Unix epoch. A line is new only if it is strictly newer.
"""

from datetime import datetime, timedelta, timezone

TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def parse_timestamp(value: str) -> datetime | None:
    """Convert '10/Oct/2000:13:55:36 -0700' to an aware UTC datetime."""
    try:
        parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(timezone.utc)


def to_micros(timestamp: datetime) -> int:
    return (timestamp - EPOCH) // _MICROSECOND


def from_micros(micros: int) -> datetime:
    return EPOCH + timedelta(microseconds=micros)


def is_new(timestamp: datetime, watermark: int) -> bool:
    """True if *timestamp* is strictly newer than *watermark*."""
    return to_micros(timestamp) > watermark
