"""
Tests for TickStreamer (aggTrade parsing and connection lifecycle).

The Binance connector is patched out; no network access is made.
"""

import json
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from trendwick.core.tick_streamer import TickStreamer
from trendwick.models.tick import RawTick

CLIENT_PATH = "trendwick.core.tick_streamer.UMFuturesWebsocketClient"


@pytest.fixture
def agg_trade_message():
    """Valid Binance aggTrade WebSocket message."""
    return {
        "e": "aggTrade",
        "E": 1704067205123,
        "s": "BTCUSDT",
        "a": 5933014,
        "p": "42150.10",
        "q": "0.005",
        "f": 100,
        "l": 105,
        "T": 1704067205000,
        "m": True,
    }


class TestInitialization:
    def test_symbols_normalized(self):
        streamer = TickStreamer(symbols=["btcusdt", "EthUsdt"])
        assert streamer.symbols == ["BTCUSDT", "ETHUSDT"]

    def test_empty_symbols_rejected(self):
        with pytest.raises(ValueError, match="symbols"):
            TickStreamer(symbols=[])

    def test_default_urls(self):
        assert TickStreamer(["BTCUSDT"], is_testnet=True).ws_url == TickStreamer.DEFAULT_TESTNET_WS_URL
        assert TickStreamer(["BTCUSDT"], is_testnet=False).ws_url == TickStreamer.DEFAULT_MAINNET_WS_URL

    def test_custom_url_wins(self):
        streamer = TickStreamer(["BTCUSDT"], ws_url="wss://example.invalid")
        assert streamer.ws_url == "wss://example.invalid"


class TestMessageHandling:
    def test_agg_trade_becomes_tick(self, agg_trade_message):
        callback = Mock()
        streamer = TickStreamer(["BTCUSDT"], on_tick_callback=callback)

        streamer._handle_trade_message(None, json.dumps(agg_trade_message))

        callback.assert_called_once()
        tick = callback.call_args.args[0]
        assert isinstance(tick, RawTick)
        assert tick.symbol == "BTCUSDT"
        assert tick.close == 42150.10
        assert tick.timestamp == datetime(2024, 1, 1, 0, 0, 5, tzinfo=timezone.utc)

    def test_dict_message_accepted(self, agg_trade_message):
        callback = Mock()
        streamer = TickStreamer(["BTCUSDT"], on_tick_callback=callback)

        streamer._handle_trade_message(None, agg_trade_message)

        callback.assert_called_once()

    def test_subscription_confirmation_ignored(self):
        callback = Mock()
        streamer = TickStreamer(["BTCUSDT"], on_tick_callback=callback)

        streamer._handle_trade_message(None, json.dumps({"result": None, "id": 1}))

        callback.assert_not_called()

    def test_missing_field_logged_not_raised(self, agg_trade_message, caplog):
        callback = Mock()
        streamer = TickStreamer(["BTCUSDT"], on_tick_callback=callback)
        del agg_trade_message["p"]

        streamer._handle_trade_message(None, agg_trade_message)

        callback.assert_not_called()
        assert "Missing required field" in caplog.text

    def test_invalid_json_logged_not_raised(self, caplog):
        streamer = TickStreamer(["BTCUSDT"], on_tick_callback=Mock())

        streamer._handle_trade_message(None, "{not json")

        assert "Invalid data type" in caplog.text

    def test_callback_error_does_not_escape(self, agg_trade_message):
        streamer = TickStreamer(["BTCUSDT"], on_tick_callback=Mock(side_effect=RuntimeError("boom")))

        streamer._handle_trade_message(None, agg_trade_message)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_subscribes_each_symbol(self):
        with patch(CLIENT_PATH) as client_cls:
            streamer = TickStreamer(["BTCUSDT", "ETHUSDT"], heartbeat_interval=3600)

            await streamer.start()

            assert client_cls.call_count == 2
            subscribed = [c.kwargs["symbol"] for c in client_cls.return_value.agg_trade.call_args_list]
            assert subscribed == ["btcusdt", "ethusdt"]
            assert streamer.is_connected is True

            await streamer.stop()

            assert client_cls.return_value.stop.call_count == 2
            assert streamer.is_connected is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        with patch(CLIENT_PATH) as client_cls:
            streamer = TickStreamer(["BTCUSDT"], heartbeat_interval=3600)

            await streamer.start()
            await streamer.start()

            assert client_cls.call_count == 1
            await streamer.stop()

    @pytest.mark.asyncio
    async def test_start_failure_raises_connection_error(self):
        with patch(CLIENT_PATH, side_effect=OSError("refused")):
            streamer = TickStreamer(["BTCUSDT"])

            with pytest.raises(ConnectionError):
                await streamer.start()

            assert streamer.is_connected is False

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        streamer = TickStreamer(["BTCUSDT"])
        await streamer.stop()
