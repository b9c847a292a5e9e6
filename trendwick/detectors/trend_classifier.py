"""
Swing-based trend classification on closed coarse candles
"""

from collections import deque
from dataclasses import replace
from typing import Deque, Tuple

from trendwick.core.exceptions import ConfigurationError
from trendwick.detectors.base import BaseDetector
from trendwick.models.candle import Candle
from trendwick.models.timeframe import Timeframe
from trendwick.models.trend import TrendDirection, TrendState


class TrendClassifier(BaseDetector):
    """
    Classify market direction from consecutive coarse swing highs/lows.

    Each closed COARSE candle is compared with the current swing reference:

    - high > swing_high and low > swing_low: candidate UP
      (up_streak += 1, down_streak = 0)
    - high < swing_high and low < swing_low: candidate DOWN
      (down_streak += 1, up_streak = 0)
    - anything else (inside, outside or equal extremes): ambiguous, streaks
      and swing reference are held over unchanged

    Direction becomes UP/DOWN once its streak reaches ``confirmation_count``.
    A bar contradicting the current direction or the opposing streak drops
    the direction to NONE immediately, so a fresh streak is needed before a
    new direction is declared.

    The first candle after construction/reset only seeds the swing reference.

    Classification depends only on the swing reference and the two streaks.
    ``window`` keeps the last ``confirmation_count`` coarse candles as
    diagnostic state for logging and inspection.
    """

    def __init__(self, symbol: str, confirmation_count: int = 3) -> None:
        """
        Args:
            symbol: Asset identifier
            confirmation_count: Consecutive confirming candles required (>= 2)

        Raises:
            ConfigurationError: If confirmation_count < 2
        """
        super().__init__("TrendClassifier", symbol)

        if confirmation_count < 2:
            raise ConfigurationError(
                f"confirmation_count must be >= 2, got {confirmation_count}"
            )

        self.confirmation_count = confirmation_count
        self._window: Deque[Candle] = deque(maxlen=confirmation_count)
        self._state = TrendState(symbol=symbol)

    @property
    def state(self) -> TrendState:
        return self._state

    @property
    def window(self) -> Tuple[Candle, ...]:
        """Most recent closed coarse candles (bounded by confirmation_count)."""
        return tuple(self._window)

    def on_candle_closed(self, candle: Candle) -> TrendState:
        return self.on_coarse_candle_closed(candle)

    def on_coarse_candle_closed(self, candle: Candle) -> TrendState:
        """
        Fold one closed coarse candle into the trend state.

        Args:
            candle: Closed COARSE candle

        Returns:
            The new TrendState (unchanged state for non-coarse input)
        """
        if not self._accepts(candle, Timeframe.COARSE):
            return self._state

        self._window.append(candle)
        prev = self._state

        if prev.last_swing_high is None or prev.last_swing_low is None:
            self._state = replace(
                prev,
                last_swing_high=candle.high,
                last_swing_low=candle.low,
                updated_at=candle.close_time,
            )
            return self._state

        direction = prev.direction
        up_streak = prev.up_streak
        down_streak = prev.down_streak
        swing_high = prev.last_swing_high
        swing_low = prev.last_swing_low

        if candle.high > swing_high and candle.low > swing_low:
            if down_streak > 0 or direction is TrendDirection.DOWN:
                direction = TrendDirection.NONE
            up_streak += 1
            down_streak = 0
            swing_high, swing_low = candle.high, candle.low
            if up_streak >= self.confirmation_count:
                direction = TrendDirection.UP

        elif candle.high < swing_high and candle.low < swing_low:
            if up_streak > 0 or direction is TrendDirection.UP:
                direction = TrendDirection.NONE
            down_streak += 1
            up_streak = 0
            swing_high, swing_low = candle.high, candle.low
            if down_streak >= self.confirmation_count:
                direction = TrendDirection.DOWN

        self._state = TrendState(
            symbol=self.symbol,
            direction=direction,
            up_streak=up_streak,
            down_streak=down_streak,
            last_swing_high=swing_high,
            last_swing_low=swing_low,
            updated_at=candle.close_time,
        )

        if direction is not prev.direction:
            self.logger.info(
                f"[{self.symbol}] Trend {prev.direction.value} -> {direction.value} "
                f"(up_streak={up_streak}, down_streak={down_streak}, "
                f"swing H={swing_high} L={swing_low})"
            )

        return self._state

    def reset(self) -> None:
        self._window.clear()
        self._state = TrendState(symbol=self.symbol)
