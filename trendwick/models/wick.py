"""
Wick pattern event model
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .timeframe import Timeframe


class WickKind(Enum):
    """Long-wick reversal patterns."""

    LONG_TAIL = "long_tail"  # long lower wick
    LONG_HEAD = "long_head"  # long upper wick


@dataclass(frozen=True)
class WickEvent:
    """
    Long-wick pattern detected on a closed candle.

    Attributes:
        symbol: Asset identifier
        kind: LONG_TAIL or LONG_HEAD
        ratio: Wick length / max(body, epsilon)
        candle_open_time: Bucket start of the candle
        timeframe: Timeframe of the candle
        price: Candle close (reference price for a resulting signal)
    """

    symbol: str
    kind: WickKind
    ratio: float
    candle_open_time: datetime
    timeframe: Timeframe
    price: float
