"""
Multi-asset signal engine.

Routes ticks to one SymbolPipeline per configured asset and hands emitted
signals to registered consumers. Assets share no mutable state; ticks of
the same asset are applied one at a time, in arrival order.
"""

import asyncio
import inspect
import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Tuple

from trendwick.core.exceptions import ConfigurationError, MalformedTickError
from trendwick.core.pipeline import PipelineResult, SymbolPipeline
from trendwick.models.signal import TradeSignal
from trendwick.models.tick import RawTick
from trendwick.utils.config import SignalConfig

if TYPE_CHECKING:
    from trendwick.core.audit_logger import AuditLogger
    from trendwick.utils.config import ConfigManager

SignalConsumer = Callable[[TradeSignal], Any]


class SignalEngine:
    """
    Router from raw ticks to per-asset pipelines.

    Two entry points:
        - ``process(tick)``: synchronous, for a single caller that already
          serializes ticks (tests, replay)
        - ``await submit(tick)``: for concurrent feed callbacks; one
          ``asyncio.Lock`` per asset serializes processing of that asset

    Example:
        ```python
        engine = SignalEngine.from_config_manager(config_manager, audit_logger)
        engine.add_signal_consumer(execution.on_signal)
        await engine.submit(tick)
        ```
    """

    def __init__(
        self,
        signal_configs: Dict[str, SignalConfig],
        audit_logger: Optional["AuditLogger"] = None,
    ) -> None:
        """
        Args:
            signal_configs: Effective SignalConfig per symbol
            audit_logger: Optional audit trail shared by all pipelines

        Raises:
            ConfigurationError: If no symbol is configured
        """
        if not signal_configs:
            raise ConfigurationError("SignalEngine requires at least one symbol")

        self.audit_logger = audit_logger
        self.pipelines: Dict[str, SymbolPipeline] = {
            symbol.upper(): SymbolPipeline(symbol.upper(), config, audit_logger)
            for symbol, config in signal_configs.items()
        }

        self._locks: Dict[str, asyncio.Lock] = {}
        self._consumers: List[SignalConsumer] = []
        self._pending: Set[asyncio.Task] = set()

        self.logger = logging.getLogger(__name__)
        self.logger.info(
            f"SignalEngine initialized for {len(self.pipelines)} symbols: "
            f"{', '.join(self.pipelines)}"
        )

    @classmethod
    def from_config_manager(
        cls,
        config_manager: "ConfigManager",
        audit_logger: Optional["AuditLogger"] = None,
    ) -> "SignalEngine":
        return cls(config_manager.signal_configs(), audit_logger)

    @property
    def symbols(self) -> List[str]:
        return list(self.pipelines)

    def pipeline(self, symbol: str) -> SymbolPipeline:
        """
        Pipeline of one asset.

        Raises:
            KeyError: If the symbol is not configured
        """
        return self.pipelines[symbol.upper()]

    def add_signal_consumer(self, consumer: SignalConsumer) -> None:
        """
        Register a callback invoked with every emitted TradeSignal.

        Plain functions and coroutine functions are both accepted. A failing
        consumer is logged and does not affect other consumers or the
        pipeline.
        """
        self._consumers.append(consumer)

    # --- Tick entry points ---

    def process(self, tick: RawTick) -> PipelineResult:
        """
        Process one tick synchronously.

        Args:
            tick: Raw tick of any configured asset

        Returns:
            PipelineResult of the owning pipeline, or a rejection for unknown
            assets
        """
        pipeline, tick = self._route(tick)
        if pipeline is None:
            return self._reject_unknown(tick)

        result = pipeline.process(tick)
        for signal in result.signals:
            self._dispatch_sync(signal)
        return result

    async def submit(self, tick: RawTick) -> PipelineResult:
        """
        Process one tick, serialized per asset.

        Ticks of different assets may be processed concurrently; ticks of the
        same asset are applied in the order their ``submit`` acquired the
        asset lock (FIFO for awaiting callers).
        """
        pipeline, tick = self._route(tick)
        if pipeline is None:
            return self._reject_unknown(tick)

        async with self._lock_for(pipeline.symbol):
            result = pipeline.process(tick)

        for signal in result.signals:
            await self._dispatch_async(signal)
        return result

    # --- Time-driven paths ---

    def advance_to(self, now: datetime) -> List[PipelineResult]:
        """Seal elapsed candles on every pipeline (synchronous callers)."""
        results = []
        for pipeline in self.pipelines.values():
            result = pipeline.advance_to(now)
            for signal in result.signals:
                self._dispatch_sync(signal)
            results.append(result)
        return results

    async def advance_all(self, now: datetime) -> List[PipelineResult]:
        """Seal elapsed candles on every pipeline under its asset lock."""
        results = []
        for symbol, pipeline in self.pipelines.items():
            async with self._lock_for(symbol):
                result = pipeline.advance_to(now)
            for signal in result.signals:
                await self._dispatch_async(signal)
            results.append(result)
        return results

    def check_feeds(self, now: datetime) -> Dict[str, float]:
        """
        Run the staleness check on every pipeline.

        Args:
            now: Current logical time

        Returns:
            {symbol: silence_seconds} for stale feeds only
        """
        stale = {}
        for symbol, pipeline in self.pipelines.items():
            silence = pipeline.check_staleness(now)
            if silence is not None:
                stale[symbol] = silence.total_seconds()
        return stale

    # --- Internals ---

    def _route(self, tick: RawTick) -> Tuple[Optional[SymbolPipeline], RawTick]:
        """Find the owning pipeline and rewrite the tick to its canonical symbol."""
        symbol = tick.symbol.strip().upper() if isinstance(tick.symbol, str) else None
        pipeline = self.pipelines.get(symbol)
        if pipeline is not None and tick.symbol != pipeline.symbol:
            tick = replace(tick, symbol=pipeline.symbol)
        return pipeline, tick

    def _lock_for(self, symbol: str) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop
        lock = self._locks.get(symbol)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[symbol] = lock
        return lock

    def _reject_unknown(self, tick: RawTick) -> PipelineResult:
        error = MalformedTickError(
            f"Unknown symbol {tick.symbol!r}. Configured symbols: {self.symbols}",
            tick=tick,
        )
        self.logger.warning(f"Tick rejected ({error.reason}): {error}")
        if self.audit_logger:
            self.audit_logger.log_tick_rejected(
                symbol=str(tick.symbol),
                reason=error.reason,
                message=str(error),
            )
        return PipelineResult(tick=tick, rejection=error)

    def _dispatch_sync(self, signal: TradeSignal) -> None:
        for consumer in self._consumers:
            try:
                outcome = consumer(signal)
                if inspect.isawaitable(outcome):
                    self._schedule(outcome)
            except Exception as e:
                self.logger.error(
                    f"Signal consumer {getattr(consumer, '__name__', consumer)!r} "
                    f"failed for {signal.symbol}: {e}",
                    exc_info=True,
                )

    async def _dispatch_async(self, signal: TradeSignal) -> None:
        for consumer in self._consumers:
            try:
                outcome = consumer(signal)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self.logger.error(
                    f"Signal consumer {getattr(consumer, '__name__', consumer)!r} "
                    f"failed for {signal.symbol}: {e}",
                    exc_info=True,
                )

    def _schedule(self, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(awaitable)
            return
        task = loop.create_task(awaitable)
        # Hold a reference until the task finishes
        self._pending.add(task)
        task.add_done_callback(self._on_consumer_task_done)

    def _on_consumer_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                f"Async signal consumer failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )
