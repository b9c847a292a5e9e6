"""
Trend state model
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TrendDirection(Enum):
    """Market direction derived from coarse candles."""

    UP = "up"
    DOWN = "down"
    NONE = "none"


@dataclass(frozen=True)
class TrendState:
    """
    Snapshot of the trend classifier after a closed coarse candle.

    Attributes:
        symbol: Asset identifier
        direction: Confirmed direction (NONE until a streak is confirmed)
        up_streak: Consecutive higher-high/higher-low candles
        down_streak: Consecutive lower-high/lower-low candles
        last_swing_high: Reference high for the next comparison
        last_swing_low: Reference low for the next comparison
        updated_at: Close time of the candle that produced this state
    """

    symbol: str
    direction: TrendDirection = TrendDirection.NONE
    up_streak: int = 0
    down_streak: int = 0
    last_swing_high: Optional[float] = None
    last_swing_low: Optional[float] = None
    updated_at: Optional[datetime] = None

    @property
    def streak_length(self) -> int:
        """Length of the streak currently being counted."""
        return self.up_streak if self.up_streak > 0 else self.down_streak

    @property
    def is_trending(self) -> bool:
        return self.direction is not TrendDirection.NONE
