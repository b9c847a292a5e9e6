"""
Raw tick model (canonical fine-grained feed input)
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from trendwick.core.exceptions import MalformedTickError

from .timeframe import Timeframe, ensure_utc


@dataclass(frozen=True)
class RawTick:
    """
    One raw price record delivered by the feed.

    A trade print carries the same value in all four price fields; a
    fine-grained candle update from the feed carries its own OHLC.

    Attributes:
        symbol: Asset identifier
        timestamp: Event time (UTC)
        open: Opening price of the record
        high: Highest price of the record
        low: Lowest price of the record
        close: Last price of the record
        timeframe: Timeframe of origin (always FINE for feed input)
    """

    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    timeframe: Timeframe = Timeframe.FINE

    @classmethod
    def from_price(cls, symbol: str, timestamp: datetime, price: float) -> "RawTick":
        """Build a tick from a single trade price."""
        return cls(
            symbol=symbol,
            timestamp=timestamp,
            open=price,
            high=price,
            low=price,
            close=price,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawTick":
        """
        Build a tick from a loosely typed mapping.

        Accepts ``timestamp`` as a datetime or as epoch milliseconds. A mapping
        with only ``price`` is treated as a trade print.

        Raises:
            MalformedTickError: If a field is missing or cannot be converted
        """
        try:
            raw_ts = data["timestamp"]
            if isinstance(raw_ts, datetime):
                timestamp = ensure_utc(raw_ts)
            else:
                timestamp = datetime.fromtimestamp(float(raw_ts) / 1000, tz=timezone.utc)

            if "price" in data and "open" not in data:
                price = float(data["price"])
                return cls.from_price(str(data["symbol"]), timestamp, price)

            return cls(
                symbol=str(data["symbol"]),
                timestamp=timestamp,
                open=float(data["open"]),
                high=float(data["high"]),
                low=float(data["low"]),
                close=float(data["close"]),
            )
        except KeyError as e:
            raise MalformedTickError(f"Missing required tick field: {e}") from e
        except (TypeError, ValueError, OverflowError) as e:
            raise MalformedTickError(f"Invalid tick field value: {e}") from e

    def validate(self) -> None:
        """
        Basic sanity checks applied at the aggregator boundary.

        Raises:
            MalformedTickError: On empty symbol, non-finite or non-positive
                prices, or high/low that do not bracket open/close
        """
        if not self.symbol:
            raise MalformedTickError("Tick has no symbol", tick=self)
        if not isinstance(self.timestamp, datetime):
            raise MalformedTickError(
                f"Tick timestamp must be a datetime, got {type(self.timestamp).__name__}",
                tick=self,
            )

        for name in ("open", "high", "low", "close"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise MalformedTickError(f"Tick {name} is not a finite number: {value!r}", tick=self)
            if value <= 0:
                raise MalformedTickError(f"Tick {name} must be positive, got {value}", tick=self)

        if self.high < max(self.open, self.close) or self.low > min(self.open, self.close):
            raise MalformedTickError(
                f"Incoherent tick OHLC: open={self.open}, high={self.high}, "
                f"low={self.low}, close={self.close}",
                tick=self,
            )
