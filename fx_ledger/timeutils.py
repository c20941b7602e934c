"""
Timestamp helpers.

Ledger timestamps are timezone-aware UTC datetimes held at millisecond
precision, so they survive the epoch-millisecond backup format unchanged.
"""

from datetime import date, datetime, time, timezone
from typing import Union


DateLike = Union[datetime, date]


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds"""
    return to_millis(datetime.now(timezone.utc))


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision"""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def normalize_timestamp(value: DateLike) -> datetime:
    """Canonical stored form: aware UTC, millisecond precision"""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return to_millis(ensure_utc(value))


def to_epoch_millis(value: datetime) -> int:
    value = ensure_utc(value)
    # Integer arithmetic avoids float rounding of the seconds value
    delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_millis(millis: int) -> datetime:
    seconds, remainder = divmod(int(millis), 1000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=remainder * 1000)


def start_of_day(value: DateLike) -> datetime:
    """00:00:00.000 of the value's day, in the value's own timezone"""
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: DateLike) -> datetime:
    """23:59:59.999 of the value's day, in the value's own timezone"""
    return start_of_day(value).replace(hour=23, minute=59, second=59, microsecond=999000)
