"""
Multi-timeframe candle aggregation.

Folds the canonical fine-grained tick stream of one asset into aligned,
closed candles at FINE, MID and COARSE timeframes. MID and COARSE candles are
built from closed FINE candles (never directly from ticks) so the three
timeframes always agree on prices.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from trendwick.core.exceptions import LateDataError, MalformedTickError
from trendwick.models.candle import Candle
from trendwick.models.tick import RawTick
from trendwick.models.timeframe import Timeframe, align_to_bucket, ensure_utc
from trendwick.utils.config import SignalConfig

HIGHER_TIMEFRAMES = (Timeframe.MID, Timeframe.COARSE)


@dataclass
class _CandleAccumulator:
    """Mutable OHLC state of the open bucket of one timeframe."""

    timeframe: Timeframe
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    count: int = 1

    def fold(self, high: float, low: float, close: float) -> None:
        self.high = max(self.high, high)
        self.low = min(self.low, low)
        self.close = close
        self.count += 1

    def snapshot(self, symbol: str, is_closed: bool) -> Candle:
        return Candle(
            symbol=symbol,
            timeframe=self.timeframe,
            open_time=self.open_time,
            close_time=self.close_time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            is_closed=is_closed,
            tick_count=self.count,
        )


class CandleAggregator:
    """
    Per-asset candle aggregator for the FINE/MID/COARSE timeframes.

    Bucketing:
        bucket_start = floor(timestamp / duration) * duration (since the epoch)

    Lifecycle of a bucket:
        - opened by the first input mapping into it
        - updated by every later input mapping into the same bucket
        - sealed when an input for a later bucket arrives, or when
          advance_to() is called past its close boundary
        - buckets without input are skipped (no gap filling)

    Late data:
        An input whose FINE bucket precedes the open FINE bucket (or the last
        sealed FINE bucket when none is open), or whose MID or COARSE bucket
        is already sealed, raises LateDataError and leaves all state
        untouched.

    Example:
        ```python
        aggregator = CandleAggregator('BTCUSDT', SignalConfig())
        for tick in ticks:
            for candle in aggregator.ingest(tick):
                route(candle)   # FINE first, then MID, then COARSE
        ```
    """

    def __init__(self, symbol: str, config: SignalConfig) -> None:
        """
        Initialize aggregator.

        Args:
            symbol: Asset identifier every ingested tick must carry
            config: Signal configuration providing timeframe durations
        """
        self.symbol = symbol
        self.durations: Dict[Timeframe, timedelta] = {
            tf: config.duration_for(tf) for tf in Timeframe
        }

        self._open: Dict[Timeframe, Optional[_CandleAccumulator]] = {tf: None for tf in Timeframe}

        # Start of the most recently sealed bucket per timeframe
        self._watermark: Dict[Timeframe, Optional[datetime]] = {tf: None for tf in Timeframe}

        self.logger = logging.getLogger(__name__)

    # --- Public API ---

    def ingest(self, tick: RawTick) -> List[Candle]:
        """
        Apply one raw tick.

        Args:
            tick: Fine-grained feed record for this aggregator's symbol

        Returns:
            Candles sealed by this tick, ordered FINE, MID, COARSE (may be empty)

        Raises:
            MalformedTickError: Tick failed sanity checks (no state change)
            LateDataError: Tick bucket precedes the open/sealed bucket (no state change)
        """
        tick.validate()
        if tick.symbol != self.symbol:
            raise MalformedTickError(
                f"Tick for {tick.symbol} routed to {self.symbol} aggregator", tick=tick
            )
        if tick.timeframe is not Timeframe.FINE:
            raise MalformedTickError(
                f"Aggregator accepts only {Timeframe.FINE.value} ticks, got {tick.timeframe.value}",
                tick=tick,
            )

        ts = ensure_utc(tick.timestamp)
        bucket = align_to_bucket(ts, self.durations[Timeframe.FINE])
        self._check_late(tick, ts, bucket)

        closed: List[Candle] = []

        current = self._open[Timeframe.FINE]
        if current is not None and bucket > current.open_time:
            closed.extend(self._seal_fine())

        # The tick may already belong to a later MID/COARSE bucket
        for tf in HIGHER_TIMEFRAMES:
            acc = self._open[tf]
            if acc is not None and align_to_bucket(ts, self.durations[tf]) > acc.open_time:
                closed.append(self._seal(tf))

        current = self._open[Timeframe.FINE]
        if current is None:
            self._open[Timeframe.FINE] = self._start(
                Timeframe.FINE, bucket, tick.open, tick.high, tick.low, tick.close
            )
        else:
            current.fold(tick.high, tick.low, tick.close)

        return closed

    def advance_to(self, now: datetime) -> List[Candle]:
        """
        Seal every open candle whose close boundary has elapsed.

        Used when the feed goes quiet so the last bucket before a pause is
        not held open indefinitely. Sealed buckets become the late-data
        watermark.

        Args:
            now: Current (logical or wall-clock) time

        Returns:
            Candles sealed, ordered FINE, MID, COARSE
        """
        now = ensure_utc(now)
        closed: List[Candle] = []

        current = self._open[Timeframe.FINE]
        if current is not None and now >= current.close_time:
            closed.extend(self._seal_fine())

        for tf in HIGHER_TIMEFRAMES:
            acc = self._open[tf]
            if acc is not None and now >= acc.close_time:
                closed.append(self._seal(tf))

        return closed

    def current(self, timeframe: Timeframe) -> Optional[Candle]:
        """Snapshot of the open candle of a timeframe, None if no bucket is open."""
        acc = self._open[timeframe]
        if acc is None:
            return None
        return acc.snapshot(self.symbol, is_closed=False)

    def last_sealed_bucket(self, timeframe: Timeframe) -> Optional[datetime]:
        return self._watermark[timeframe]

    def reset(self) -> None:
        """Drop all open candles and watermarks."""
        self._open = {tf: None for tf in Timeframe}
        self._watermark = {tf: None for tf in Timeframe}

    # --- Internals ---

    def _check_late(self, tick: RawTick, ts: datetime, bucket: datetime) -> None:
        current = self._open[Timeframe.FINE]
        if current is not None:
            if bucket < current.open_time:
                raise LateDataError(
                    f"Late tick for {self.symbol}: bucket {bucket.isoformat()} "
                    f"precedes open bucket {current.open_time.isoformat()}",
                    tick=tick,
                    bucket_start=bucket,
                    open_bucket_start=current.open_time,
                    timeframe=Timeframe.FINE,
                )
        else:
            sealed = self._watermark[Timeframe.FINE]
            if sealed is not None and bucket <= sealed:
                raise LateDataError(
                    f"Late tick for {self.symbol}: bucket {bucket.isoformat()} "
                    f"already sealed (last sealed {sealed.isoformat()})",
                    tick=tick,
                    bucket_start=bucket,
                    open_bucket_start=None,
                    timeframe=Timeframe.FINE,
                )

        # A sealed MID/COARSE bucket can no longer absorb the FINE candle
        for tf in HIGHER_TIMEFRAMES:
            sealed = self._watermark[tf]
            if sealed is None:
                continue
            tf_bucket = align_to_bucket(ts, self.durations[tf])
            if tf_bucket <= sealed:
                acc = self._open[tf]
                raise LateDataError(
                    f"Late tick for {self.symbol}: {tf.value} bucket {tf_bucket.isoformat()} "
                    f"already sealed (last sealed {sealed.isoformat()})",
                    tick=tick,
                    bucket_start=tf_bucket,
                    open_bucket_start=acc.open_time if acc is not None else None,
                    timeframe=tf,
                )

    def _start(
        self, timeframe: Timeframe, bucket: datetime, open_: float, high: float, low: float, close: float
    ) -> _CandleAccumulator:
        return _CandleAccumulator(
            timeframe=timeframe,
            open_time=bucket,
            close_time=bucket + self.durations[timeframe],
            open=open_,
            high=high,
            low=low,
            close=close,
        )

    def _seal(self, timeframe: Timeframe) -> Candle:
        acc = self._open[timeframe]
        candle = acc.snapshot(self.symbol, is_closed=True)
        self._open[timeframe] = None
        self._watermark[timeframe] = acc.open_time

        self.logger.debug(
            f"[{self.symbol}] {timeframe.value} candle closed "
            f"{candle.open_time.isoformat()} O={candle.open} H={candle.high} "
            f"L={candle.low} C={candle.close} ({candle.tick_count} inputs)"
        )
        return candle

    def _seal_fine(self) -> List[Candle]:
        """Seal the open FINE candle and fold it into MID/COARSE."""
        fine = self._seal(Timeframe.FINE)
        closed = [fine]

        for tf in HIGHER_TIMEFRAMES:
            bucket = align_to_bucket(fine.open_time, self.durations[tf])

            acc = self._open[tf]
            if acc is not None and bucket > acc.open_time:
                closed.append(self._seal(tf))
                acc = None

            if acc is None:
                self._open[tf] = self._start(tf, bucket, fine.open, fine.high, fine.low, fine.close)
            else:
                acc.fold(fine.high, fine.low, fine.close)

        return closed
