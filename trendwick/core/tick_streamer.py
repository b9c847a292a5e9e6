"""
Live tick feed from Binance USDT-M Futures aggregated trades.

Each aggTrade message is turned into a RawTick trade print and handed to a
callback. The streamer is a pure relay: it owns no candle or signal state.
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from binance.websocket.um_futures.websocket_client import UMFuturesWebsocketClient

from trendwick.core.streamer_protocol import IDataStreamer
from trendwick.models.tick import RawTick


class TickStreamer(IDataStreamer):
    """
    Aggregated-trade streamer, one WebSocket connection per symbol.

    The callback runs on the connector's WebSocket thread; callers that feed
    an asyncio pipeline must bridge into their loop themselves (see
    ``SignalBot``). Reconnection is left to the connector.

    Example:
        >>> streamer = TickStreamer(
        ...     symbols=['BTCUSDT', 'ETHUSDT'],
        ...     is_testnet=True,
        ...     on_tick_callback=handle_tick
        ... )
        >>> await streamer.start()
        >>> await streamer.stop()
    """

    DEFAULT_TESTNET_WS_URL = "wss://stream.binancefuture.com"
    DEFAULT_MAINNET_WS_URL = "wss://fstream.binance.com"

    def __init__(
        self,
        symbols: List[str],
        is_testnet: bool = True,
        on_tick_callback: Optional[Callable[[RawTick], None]] = None,
        ws_url: Optional[str] = None,
        heartbeat_interval: float = 30.0,
    ) -> None:
        """
        Args:
            symbols: Trading pairs to subscribe (e.g., ['BTCUSDT'])
            is_testnet: Whether to use the testnet endpoint (default: True)
            on_tick_callback: Invoked with each parsed RawTick
            ws_url: Custom WebSocket URL, overrides the default endpoints
            heartbeat_interval: Seconds between connection status logs
        """
        if not symbols:
            raise ValueError("symbols list cannot be empty")

        self.symbols = [s.upper() for s in symbols]
        self.is_testnet = is_testnet
        self.on_tick_callback = on_tick_callback

        if ws_url:
            self._ws_url = ws_url
        else:
            self._ws_url = (
                self.DEFAULT_TESTNET_WS_URL if is_testnet else self.DEFAULT_MAINNET_WS_URL
            )

        self.ws_clients: Dict[str, UMFuturesWebsocketClient] = {}

        self._running = False
        self._is_connected = False
        self._message_count = 0

        self._started_at = 0.0
        self._heartbeat_interval = heartbeat_interval
        self._heartbeat_task: Optional[asyncio.Task] = None

        self.logger = logging.getLogger(__name__)
        self.logger.info(
            f"TickStreamer initialized: {len(self.symbols)} symbols, "
            f"environment={'TESTNET' if is_testnet else 'MAINNET'}"
        )

    @property
    def is_connected(self) -> bool:
        if not self._is_connected or not self.ws_clients:
            return False
        return len(self.ws_clients) == len(self.symbols)

    @property
    def ws_url(self) -> str:
        return self._ws_url

    def _handle_trade_message(self, _, message) -> None:
        """
        Handle one raw aggTrade WebSocket message.

        Errors are logged and never raised so a malformed frame cannot tear
        down the WebSocket thread.

        Args:
            _: WebSocket client (unused)
            message: Raw message (str or dict)
        """
        try:
            if isinstance(message, (str, bytes)):
                message = json.loads(message)

            if not isinstance(message, dict) or message.get("e") != "aggTrade":
                # Subscription confirmations, etc.
                return

            tick = RawTick.from_price(
                symbol=message["s"],
                timestamp=datetime.fromtimestamp(message["T"] / 1000, tz=timezone.utc),
                price=float(message["p"]),
            )
            self._message_count += 1

            if self.on_tick_callback:
                self.on_tick_callback(tick)

        except KeyError as e:
            self.logger.error(f"Missing required field in aggTrade message: {e} | Message: {message}")
        except (ValueError, TypeError) as e:
            self.logger.error(f"Invalid data type in aggTrade message: {e} | Message: {message}")
        except Exception as e:
            self.logger.error(
                f"Unexpected error handling aggTrade message: {e} | Message: {message}",
                exc_info=True,
            )

    async def start(self) -> None:
        """
        Open one connection per symbol and subscribe to its aggTrade stream.

        Raises:
            ConnectionError: If any connection fails
        """
        if self._running:
            self.logger.warning("Streaming already active, ignoring start request")
            return

        try:
            self.logger.info(f"Opening {len(self.symbols)} WebSocket connections to {self._ws_url}")

            for symbol in self.symbols:
                client = UMFuturesWebsocketClient(
                    stream_url=self._ws_url, on_message=self._handle_trade_message
                )
                self.logger.debug(f"[{symbol}] Subscribing to {symbol.lower()}@aggTrade")
                client.agg_trade(symbol=symbol.lower())
                self.ws_clients[symbol] = client

                # Stagger connections to stay under the connection rate limit
                if len(self.symbols) > 1:
                    await asyncio.sleep(0.1)

            self._running = True
            self._is_connected = True

            self._started_at = time.time()
            self._heartbeat_task = asyncio.create_task(self._heartbeat_monitor())

            self.logger.info(f"Streaming aggTrade for {', '.join(self.ws_clients)}")

        except Exception as e:
            self.logger.error(f"Failed to start WebSocket streaming: {e}", exc_info=True)
            await self.stop()
            raise ConnectionError(f"WebSocket initialization failed: {e}") from e

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the heartbeat and close every connection.

        Args:
            timeout: Maximum seconds to wait for the clients to stop
        """
        if not self._running and not self.ws_clients:
            self.logger.debug("Streamer already stopped, ignoring stop request")
            return

        self.logger.info("Stopping TickStreamer...")

        if self._heartbeat_task and not self._heartbeat_task.done():
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass

        self._running = False
        self._is_connected = False

        if self.ws_clients:
            stop_tasks = [asyncio.to_thread(client.stop) for client in self.ws_clients.values()]
            try:
                await asyncio.wait_for(asyncio.gather(*stop_tasks), timeout=timeout)
                self.logger.info("All WebSocket clients stopped")
            except asyncio.TimeoutError:
                self.logger.warning(f"WebSocket stop exceeded {timeout}s timeout, forcing cleanup")
            except Exception as e:
                self.logger.error(f"Error stopping WebSocket clients: {e}", exc_info=True)
            self.ws_clients.clear()

        self.logger.info(f"TickStreamer stopped ({self._message_count} trades received)")

    async def _heartbeat_monitor(self) -> None:
        """Log connection status every ``heartbeat_interval`` seconds."""
        while self._running:
            try:
                await asyncio.sleep(self._heartbeat_interval)
                if not self._running:
                    break

                self.logger.info(
                    f"WebSocket heartbeat: {len(self.ws_clients)} active connections, "
                    f"status={'CONNECTED' if self._is_connected else 'DISCONNECTED'}, "
                    f"trades={self._message_count}, "
                    f"uptime={time.time() - self._started_at:.1f}s"
                )
            except asyncio.CancelledError:
                break
