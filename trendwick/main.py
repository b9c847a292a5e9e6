"""
Main entry point for the trendwick signal engine.

SignalBot wires configuration, logging, the multi-asset SignalEngine and the
live tick feed together, and logs every emitted trade message.
"""

import asyncio
import concurrent.futures
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

from trendwick.core.audit_logger import AuditLogger
from trendwick.core.messages import encode_trade_message
from trendwick.core.signal_engine import SignalEngine
from trendwick.core.tick_streamer import TickStreamer
from trendwick.models.signal import TradeSignal
from trendwick.models.tick import RawTick
from trendwick.utils.config import ConfigManager
from trendwick.utils.logger import TradingLogger, log_execution_time

# Candles are sealed this long after their boundary so trades stamped just
# before it can still arrive
CLOSE_GRACE = timedelta(seconds=1)


class SignalBot:
    """
    Orchestrator for the live signal pipeline.

    Lifecycle:
        1. __init__() - minimal setup
        2. initialize() - configuration, logging, engine and feed
        3. run() - stream ticks and run the periodic feed checks
        4. shutdown() - stop the feed and close the audit log
    """

    def __init__(self, config_dir: str = "configs") -> None:
        self.config_dir = config_dir

        self.config_manager: Optional[ConfigManager] = None
        self.audit_logger: Optional[AuditLogger] = None
        self.engine: Optional[SignalEngine] = None
        self.streamer: Optional[TickStreamer] = None
        self.logger: Optional[logging.Logger] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False
        self._dropped_ticks = 0

    def initialize(self) -> None:
        """
        Build every component in dependency order.

        Raises:
            ConfigurationError: If any configuration value is invalid
        """
        self.config_manager = ConfigManager(self.config_dir)
        self.config_manager.validate()

        logging_config = self.config_manager.logging_config
        TradingLogger(logging_config.__dict__)
        self.logger = logging.getLogger(__name__)

        feed_config = self.config_manager.feed_config
        self.logger.info("=" * 50)
        self.logger.info("trendwick signal engine starting...")
        self.logger.info(f"Environment: {'TESTNET' if feed_config.is_testnet else 'MAINNET'}")
        self.logger.info(f"Symbols: {', '.join(feed_config.symbols)}")
        for symbol, config in self.config_manager.signal_configs().items():
            self.logger.info(f"[{symbol}] {config.to_dict()}")
        self.logger.info("=" * 50)

        self.audit_logger = AuditLogger(log_dir=f"{logging_config.log_dir}/audit")

        self.engine = SignalEngine.from_config_manager(self.config_manager, self.audit_logger)
        self.engine.add_signal_consumer(self._on_signal)

        self.streamer = TickStreamer(
            symbols=feed_config.symbols,
            is_testnet=feed_config.is_testnet,
            on_tick_callback=self._on_tick_received,
            ws_url=feed_config.ws_url,
        )

        self.logger.info("All components initialized successfully")

    def _on_tick_received(self, tick: RawTick) -> None:
        """
        Feed callback, called on the WebSocket thread.

        Schedules the tick on the bot's event loop; ticks arriving before
        ``run()`` captured the loop or after shutdown are dropped.
        """
        loop = self._loop
        if loop is None or not self._running or loop.is_closed():
            self._dropped_ticks += 1
            return
        future = asyncio.run_coroutine_threadsafe(self.engine.submit(tick), loop)
        future.add_done_callback(self._on_submit_done)

    def _on_submit_done(self, future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.logger.error(
                f"Tick processing failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    def _on_signal(self, trade_signal: TradeSignal) -> None:
        """Execution collaborator: log the broker trade message."""
        self.logger.info(
            f"[{trade_signal.symbol}] Trade message: {encode_trade_message(trade_signal)}"
        )

    async def _monitor_feeds(self, interval: float) -> None:
        """Seal elapsed candles and check staleness every ``interval`` seconds."""
        while self._running:
            try:
                await asyncio.sleep(interval)
                now = datetime.now(timezone.utc)
                with log_execution_time("feed_check"):
                    await self.engine.advance_all(now - CLOSE_GRACE)
                    self.engine.check_feeds(now)
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Feed monitor error: {e}", exc_info=True)

    async def run(self) -> None:
        """Stream until ``request_stop()`` is called, then shut down."""
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._running = True

        interval = min(c.fine_duration for c in self.config_manager.signal_configs().values())
        monitor_task = asyncio.create_task(self._monitor_feeds(interval))

        try:
            await self.streamer.start()
            self.logger.info("Streaming started")
            # Start the silence clock so a feed that never delivers is reported
            self.engine.check_feeds(datetime.now(timezone.utc))
            await self._stop_event.wait()
        finally:
            monitor_task.cancel()
            try:
                await monitor_task
            except asyncio.CancelledError:
                pass
            await self.shutdown()

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def shutdown(self) -> None:
        """Stop the feed and close the audit log (idempotent)."""
        if not self._running:
            return
        self._running = False

        self.logger.info("Initiating shutdown...")
        if self.streamer:
            await self.streamer.stop()
        if self.audit_logger:
            self.audit_logger.close()
        if self._dropped_ticks:
            self.logger.info(f"{self._dropped_ticks} ticks dropped outside the run window")
        self.logger.info("Shutdown complete")


async def _run_bot(bot: SignalBot) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, bot.request_stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(bot.request_stop))
    await bot.run()


def main() -> None:
    """
    Application entry point.

    Initializes the bot, installs SIGINT/SIGTERM handlers for a graceful
    stop and runs the event loop until stopped.
    """
    bot = SignalBot()

    try:
        bot.initialize()
        asyncio.run(_run_bot(bot))
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
