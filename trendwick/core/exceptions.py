"""
Custom exceptions for the signal engine
"""

from datetime import datetime
from typing import Any, Optional


class TrendwickError(Exception):
    """Base exception for signal engine errors"""


class ConfigurationError(TrendwickError):
    """Invalid configuration (fatal at startup)"""


class TickRejectedError(TrendwickError):
    """
    A tick was refused at the aggregator boundary.

    Per-tick errors never mutate pipeline state and never abort processing
    of subsequent ticks.
    """

    reason = "rejected"

    def __init__(self, message: str, tick: Optional[Any] = None):
        super().__init__(message)
        self.tick = tick


class MalformedTickError(TickRejectedError):
    """Tick failed basic sanity checks (missing fields, bad prices, unknown asset)"""

    reason = "malformed_input"


class LateDataError(TickRejectedError):
    """Tick maps to a bucket before the currently open (or last sealed) bucket"""

    reason = "late_data"

    def __init__(
        self,
        message: str,
        tick: Optional[Any] = None,
        bucket_start: Optional[datetime] = None,
        open_bucket_start: Optional[datetime] = None,
        timeframe: Optional[Any] = None,
    ):
        super().__init__(message, tick=tick)
        self.bucket_start = bucket_start
        self.open_bucket_start = open_bucket_start
        self.timeframe = timeframe
