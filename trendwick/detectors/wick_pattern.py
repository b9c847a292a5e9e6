"""
Long-wick reversal pattern detection on closed candles
"""

from typing import Optional

from trendwick.core.exceptions import ConfigurationError
from trendwick.detectors.base import BaseDetector
from trendwick.models.candle import Candle
from trendwick.models.timeframe import Timeframe
from trendwick.models.wick import WickEvent, WickKind


class WickPatternDetector(BaseDetector):
    """
    Detect long tails (lower wicks) and long heads (upper wicks).

    For a closed candle:
        body = |close - open|
        tail = min(open, close) - low
        head = high - max(open, close)

    LONG_TAIL when tail >= ratio_threshold * max(body, epsilon) and tail > head;
    LONG_HEAD symmetrically. On a doji (body <= epsilon) the wick must also
    reach ``min_absolute_wick``. At most one event is emitted per candle.
    """

    def __init__(
        self,
        symbol: str,
        ratio_threshold: float = 2.0,
        min_absolute_wick: float = 0.0,
        epsilon: float = 1e-9,
        timeframe: Timeframe = Timeframe.FINE,
    ) -> None:
        super().__init__("WickPatternDetector", symbol)

        if ratio_threshold <= 0:
            raise ConfigurationError(f"ratio_threshold must be positive, got {ratio_threshold}")
        if min_absolute_wick < 0:
            raise ConfigurationError(f"min_absolute_wick cannot be negative, got {min_absolute_wick}")
        if epsilon <= 0:
            raise ConfigurationError(f"epsilon must be positive, got {epsilon}")

        self.ratio_threshold = ratio_threshold
        self.min_absolute_wick = min_absolute_wick
        self.epsilon = epsilon
        self.timeframe = timeframe

    def on_candle_closed(self, candle: Candle) -> Optional[WickEvent]:
        """
        Evaluate one closed candle.

        Args:
            candle: Closed candle; candles of other timeframes are ignored

        Returns:
            WickEvent if a long tail or long head is present, None otherwise
        """
        if not self._accepts(candle, self.timeframe):
            return None

        body = candle.body_size
        tail = candle.lower_wick
        head = candle.upper_wick

        if tail > head and self._is_long(tail, body):
            kind, wick = WickKind.LONG_TAIL, tail
        elif head > tail and self._is_long(head, body):
            kind, wick = WickKind.LONG_HEAD, head
        else:
            return None

        event = WickEvent(
            symbol=self.symbol,
            kind=kind,
            ratio=wick / max(body, self.epsilon),
            candle_open_time=candle.open_time,
            timeframe=candle.timeframe,
            price=candle.close,
        )
        self.logger.debug(
            f"[{self.symbol}] {kind.value} on {candle.timeframe.value} candle "
            f"{candle.open_time.isoformat()}: wick={wick:.8g} body={body:.8g} "
            f"ratio={event.ratio:.4g}"
        )
        return event

    def _is_long(self, wick: float, body: float) -> bool:
        if wick < self.ratio_threshold * max(body, self.epsilon):
            return False
        if body <= self.epsilon:
            return wick >= self.min_absolute_wick
        return True

    def reset(self) -> None:
        """Stateless between candles."""
