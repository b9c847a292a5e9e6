"""
Candlestick data model
"""

from dataclasses import dataclass
from datetime import datetime

from .timeframe import Timeframe


@dataclass(frozen=True)
class Candle:
    """
    OHLC bar for one timeframe bucket of one asset.

    Candles handed out by the aggregator are immutable snapshots. An open
    candle (``is_closed=False``) is a point-in-time view of a bucket that is
    still accumulating; once a closed candle has been emitted for a bucket it
    is never re-opened.

    Attributes:
        symbol: Asset identifier (e.g., 'BTCUSDT')
        timeframe: Timeframe label (FINE, MID, COARSE)
        open_time: Bucket start (UTC, aligned to the timeframe duration)
        close_time: Bucket end (open_time + timeframe duration)
        open: First price in the bucket
        high: Highest price in the bucket
        low: Lowest price in the bucket
        close: Last price in the bucket
        is_closed: Whether the bucket has been sealed
        tick_count: Number of inputs folded into this candle
    """

    symbol: str
    timeframe: Timeframe
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    is_closed: bool = False
    tick_count: int = 1

    def __post_init__(self) -> None:
        """Validate price coherence."""
        if self.high < max(self.open, self.close):
            raise ValueError(
                f"High ({self.high}) must be >= max(open={self.open}, close={self.close})"
            )
        if self.low > min(self.open, self.close):
            raise ValueError(
                f"Low ({self.low}) must be <= min(open={self.open}, close={self.close})"
            )

    @property
    def bucket_start(self) -> datetime:
        """Alias of open_time."""
        return self.open_time

    @property
    def body_size(self) -> float:
        """Absolute size of candle body (close - open)."""
        return abs(self.close - self.open)

    @property
    def is_bullish(self) -> bool:
        """True if closing price > opening price."""
        return self.close > self.open

    @property
    def upper_wick(self) -> float:
        """Upper shadow (head) size."""
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        """Lower shadow (tail) size."""
        return min(self.open, self.close) - self.low

    @property
    def total_range(self) -> float:
        """Total price range (high - low)."""
        return self.high - self.low
