"""
Tests for SignalBot bootstrap, tick bridging and shutdown.
"""

import asyncio
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest

from trendwick.core.signal_engine import SignalEngine
from trendwick.main import SignalBot
from trendwick.models.tick import RawTick

CONFIG_INI = """
[feed]
symbols = BTCUSDT
use_testnet = true

[signals]
fine_duration = 10
mid_duration = 60
coarse_duration = 300

[logging]
log_level = INFO
log_dir = {log_dir}
log_signals = false
"""


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    for var in ("TRENDWICK_SYMBOLS", "TRENDWICK_USE_TESTNET", "TRENDWICK_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    config = tmp_path / "configs"
    config.mkdir()
    (config / "trading_config.ini").write_text(CONFIG_INI.format(log_dir=tmp_path / "logs"))
    return config


@pytest.fixture
def bot(config_dir):
    bot = SignalBot(config_dir=str(config_dir))
    yield bot
    if bot.audit_logger:
        bot.audit_logger.close()
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
    root_logger.handlers.clear()


class TestInitialization:
    def test_components_wired(self, bot):
        bot.initialize()

        assert isinstance(bot.engine, SignalEngine)
        assert bot.engine.symbols == ["BTCUSDT"]
        assert bot.streamer.symbols == ["BTCUSDT"]
        assert bot.streamer.on_tick_callback == bot._on_tick_received
        assert bot.audit_logger.log_file.parent.name == "audit"


class TestTickBridge:
    def test_ticks_dropped_before_run(self, bot):
        bot.initialize()

        bot._on_tick_received(RawTick.from_price("BTCUSDT", datetime.now(timezone.utc), 1.0))

        assert bot._dropped_ticks == 1

    @pytest.mark.asyncio
    async def test_tick_from_feed_thread_reaches_engine(self, bot):
        bot.initialize()
        bot.streamer.start = AsyncMock()
        bot.streamer.stop = AsyncMock()

        run_task = asyncio.create_task(bot.run())
        await asyncio.sleep(0)

        # Silence clock armed at startup, before any tick
        staleness = bot.engine.pipeline("BTCUSDT").staleness
        assert staleness.silence(datetime.now(timezone.utc)) is not None

        tick = RawTick.from_price("BTCUSDT", datetime(2024, 1, 1, tzinfo=timezone.utc), 100.0)
        with patch.object(bot.engine, "submit", new=AsyncMock()) as submit:
            await asyncio.to_thread(bot._on_tick_received, tick)
            await asyncio.sleep(0.05)
            submit.assert_awaited_once_with(tick)

        bot.request_stop()
        await run_task

        bot.streamer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tick_processing_failure_is_logged(self, bot):
        bot.initialize()
        bot.streamer.start = AsyncMock()
        bot.streamer.stop = AsyncMock()

        run_task = asyncio.create_task(bot.run())
        await asyncio.sleep(0)
        bot.logger = Mock()

        tick = RawTick.from_price("BTCUSDT", datetime(2024, 1, 1, tzinfo=timezone.utc), 100.0)
        failing = AsyncMock(side_effect=RuntimeError("pipeline exploded"))
        with patch.object(bot.engine, "submit", new=failing):
            await asyncio.to_thread(bot._on_tick_received, tick)
            await asyncio.sleep(0.05)

        assert "pipeline exploded" in bot.logger.error.call_args.args[0]

        bot.request_stop()
        await run_task

    def test_signal_consumer_logs_trade_message(self, bot):
        bot.initialize()
        bot.logger = Mock()
        signal = Mock(symbol="BTCUSDT")
        signal.to_message.return_value = '{"action": "trade", "direction": "call", "price": 1.0}'

        bot._on_signal(signal)

        message = bot.logger.info.call_args.args[0]
        assert '"action": "trade"' in message
        assert "[BTCUSDT]" in message


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, bot):
        bot.initialize()
        bot.streamer.start = AsyncMock()
        bot.streamer.stop = AsyncMock()

        run_task = asyncio.create_task(bot.run())
        await asyncio.sleep(0)
        bot.request_stop()
        await run_task

        await bot.shutdown()

        bot.streamer.stop.assert_awaited_once()
