"""
Timeframe labels and bucket alignment helpers
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Timeframe(Enum):
    """Candle timeframes handled by the aggregator (durations come from config)."""

    FINE = "fine"
    MID = "mid"
    COARSE = "coarse"


def ensure_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def align_to_bucket(ts: datetime, duration: timedelta) -> datetime:
    """
    Floor a timestamp to the start of its bucket.

    Buckets are exact multiples of ``duration`` since the Unix epoch, so
    alignment is identical for every timeframe and every asset.

    Args:
        ts: Timestamp to align
        duration: Bucket length

    Returns:
        Aware UTC datetime of the bucket start

    Example:
        >>> align_to_bucket(datetime(2024, 1, 1, 0, 0, 17, tzinfo=timezone.utc),
        ...                 timedelta(seconds=10))
        datetime.datetime(2024, 1, 1, 0, 0, 10, tzinfo=datetime.timezone.utc)
    """
    elapsed = ensure_utc(ts) - EPOCH
    return EPOCH + (elapsed // duration) * duration
