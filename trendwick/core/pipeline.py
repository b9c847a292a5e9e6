"""
Per-asset signal pipeline.

One SymbolPipeline owns every piece of state for one asset and applies
ticks strictly in arrival order:

    tick -> CandleAggregator -> {TrendClassifier, WickPatternDetector}
         -> SignalDecisionEngine -> TradeSignal
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional

from trendwick.core.aggregator import CandleAggregator
from trendwick.core.decision_engine import SignalDecisionEngine
from trendwick.core.exceptions import LateDataError, TickRejectedError
from trendwick.core.staleness import StalenessMonitor
from trendwick.detectors.trend_classifier import TrendClassifier
from trendwick.detectors.wick_pattern import WickPatternDetector
from trendwick.models.candle import Candle
from trendwick.models.signal import TradeSignal
from trendwick.models.tick import RawTick
from trendwick.models.timeframe import Timeframe, ensure_utc
from trendwick.models.trend import TrendState
from trendwick.models.wick import WickEvent
from trendwick.utils.config import SignalConfig
from trendwick.utils.logger import TradingLogger

if TYPE_CHECKING:
    from trendwick.core.audit_logger import AuditLogger


@dataclass
class PipelineResult:
    """
    Outcome of one processing step.

    Attributes:
        tick: Tick that was processed (None for time-driven steps)
        closed_candles: Candles sealed during the step (FINE, MID, COARSE order)
        trend: Trend state after the last coarse candle of the step, if any
        wick_events: Wick events detected during the step
        signals: Signals issued during the step (at most one)
        rejection: Per-tick error if the tick was refused
    """

    tick: Optional[RawTick] = None
    closed_candles: List[Candle] = field(default_factory=list)
    trend: Optional[TrendState] = None
    wick_events: List[WickEvent] = field(default_factory=list)
    signals: List[TradeSignal] = field(default_factory=list)
    rejection: Optional[TickRejectedError] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


class SymbolPipeline:
    """
    Owner of the aggregation, classification, detection and decision state
    of one asset.

    Not thread-safe: callers must serialize invocations per asset (the
    SignalEngine does this with one lock per asset).

    Example:
        ```python
        pipeline = SymbolPipeline('BTCUSDT', SignalConfig())
        result = pipeline.process(tick)
        if result.rejection:
            ...  # logged and audited already, keep going
        for signal in result.signals:
            execute(signal)
        ```
    """

    def __init__(
        self,
        symbol: str,
        config: SignalConfig,
        audit_logger: Optional["AuditLogger"] = None,
    ) -> None:
        self.symbol = symbol
        self.config = config
        self.audit_logger = audit_logger

        self.aggregator = CandleAggregator(symbol, config)
        self.trend_classifier = TrendClassifier(symbol, config.trend_confirmation_count)
        self.wick_detector = WickPatternDetector(
            symbol,
            ratio_threshold=config.wick_ratio_threshold,
            min_absolute_wick=config.min_absolute_wick,
            epsilon=config.doji_epsilon,
            timeframe=config.wick_timeframe_enum,
        )
        self.decision_engine = SignalDecisionEngine(symbol, config.cooldown)
        self.staleness = StalenessMonitor(config.stale_after)

        self._stale_reset_done = False
        self.logger = logging.getLogger(__name__)

    # --- Public API ---

    def process(self, tick: RawTick) -> PipelineResult:
        """
        Apply one tick.

        Per-tick errors are logged, audited and returned on the result; they
        never raise and never mutate state.

        Args:
            tick: Raw tick for this asset

        Returns:
            PipelineResult describing what the tick produced
        """
        result = PipelineResult(tick=tick)

        try:
            closed = self.aggregator.ingest(tick)
        except TickRejectedError as e:
            self._report_rejection(e)
            result.rejection = e
            return result

        now = ensure_utc(tick.timestamp)
        if self.staleness.touch(now):
            self._report_recovery(now)

        self.decision_engine.poll(now)
        self._handle_closed(closed, now, result)
        return result

    def advance_to(self, now: datetime) -> PipelineResult:
        """
        Time-driven step: seal candles whose boundary elapsed and expire
        the cooldown.

        Args:
            now: Current logical time
        """
        now = ensure_utc(now)
        result = PipelineResult()
        closed = self.aggregator.advance_to(now)
        self.decision_engine.poll(now)
        self._handle_closed(closed, now, result)
        return result

    def check_staleness(self, now: datetime) -> Optional[timedelta]:
        """
        Report a stale feed.

        Logs a warning and audits once per stale episode. TrendState is never
        reset here; the decision engine is forced to IDLE only when
        ``stale_reset_after`` is configured and the silence exceeds it.

        Returns:
            Silence duration if stale, None otherwise
        """
        was_stale = self.staleness.is_stale
        silence = self.staleness.check(now)
        if silence is None:
            return None

        if not was_stale:
            self.logger.warning(
                f"[{self.symbol}] Feed stale: no tick for {silence.total_seconds():.1f}s "
                f"(threshold {self.config.stale_after.total_seconds():.1f}s)"
            )
            if self.audit_logger:
                from trendwick.core.audit_logger import AuditEventType

                self.audit_logger.log_event(
                    event_type=AuditEventType.FEED_STALE,
                    operation="check_staleness",
                    symbol=self.symbol,
                    additional_data={
                        "silence_seconds": silence.total_seconds(),
                        "last_seen": self.staleness.last_seen,
                    },
                )

        reset_after = self.config.stale_reset_after
        if reset_after > 0 and not self._stale_reset_done and silence.total_seconds() >= reset_after:
            self._stale_reset_done = True
            self.reset_decision()

        return silence

    def reset_decision(self) -> None:
        """Force the decision engine back to IDLE (trend state is kept)."""
        self.decision_engine.reset()
        self.logger.warning(f"[{self.symbol}] Decision engine reset to IDLE")
        if self.audit_logger:
            from trendwick.core.audit_logger import AuditEventType

            self.audit_logger.log_event(
                event_type=AuditEventType.ENGINE_RESET,
                operation="reset_decision",
                symbol=self.symbol,
                additional_data={"state": self.decision_engine.state.value},
            )

    def reset(self) -> None:
        """Drop all state (session restart)."""
        self.aggregator.reset()
        self.trend_classifier.reset()
        self.decision_engine = SignalDecisionEngine(self.symbol, self.config.cooldown)
        self.staleness.reset()
        self._stale_reset_done = False
        self.logger.info(f"[{self.symbol}] Pipeline state reset")

    # --- Internals ---

    def _handle_closed(self, closed: List[Candle], now: datetime, result: PipelineResult) -> None:
        result.closed_candles.extend(closed)

        for candle in closed:
            event = self.wick_detector.on_candle_closed(candle)
            if event is not None:
                result.wick_events.append(event)
                signal = self.decision_engine.on_wick_event(event, now)
                if signal is not None:
                    result.signals.append(signal)
                    self._report_signal(signal)

            if candle.timeframe is Timeframe.COARSE:
                previous = self.trend_classifier.state.direction
                trend = self.trend_classifier.on_coarse_candle_closed(candle)
                result.trend = trend
                if trend.direction is not previous:
                    self._report_trend_change(previous, trend)
                self.decision_engine.on_trend(trend, now)

    def _report_rejection(self, error: TickRejectedError) -> None:
        details = {}
        if isinstance(error, LateDataError):
            details = {
                "bucket_start": error.bucket_start,
                "open_bucket_start": error.open_bucket_start,
                "timeframe": error.timeframe.value if error.timeframe else None,
            }

        self.logger.warning(f"[{self.symbol}] Tick rejected ({error.reason}): {error}")
        if self.audit_logger:
            self.audit_logger.log_tick_rejected(
                symbol=self.symbol,
                reason=error.reason,
                message=str(error),
                details=details or None,
            )

    def _report_recovery(self, now: datetime) -> None:
        self._stale_reset_done = False
        self.logger.info(f"[{self.symbol}] Feed recovered at {now.isoformat()}")
        if self.audit_logger:
            from trendwick.core.audit_logger import AuditEventType

            self.audit_logger.log_event(
                event_type=AuditEventType.FEED_RECOVERED,
                operation="process",
                symbol=self.symbol,
            )

    def _report_trend_change(self, previous, trend: TrendState) -> None:
        data = {
            "symbol": self.symbol,
            "from": previous.value,
            "to": trend.direction.value,
            "up_streak": trend.up_streak,
            "down_streak": trend.down_streak,
        }
        TradingLogger.log_signal("TREND_CHANGED", data)
        if self.audit_logger:
            from trendwick.core.audit_logger import AuditEventType

            self.audit_logger.log_event(
                event_type=AuditEventType.TREND_CHANGED,
                operation="classify",
                symbol=self.symbol,
                additional_data=data,
            )

    def _report_signal(self, signal: TradeSignal) -> None:
        TradingLogger.log_signal("SIGNAL_ISSUED", signal.to_dict())
        if self.audit_logger:
            self.audit_logger.log_signal_issued(self.symbol, signal.to_dict())
