"""
Broker WebSocket message codec.

Inbound candle updates:
    {"action": "candles", "message": [open, close, high, low]}

Outbound trade orders:
    {"action": "trade", "direction": "call" | "put", "price": <float>}
"""

import json
from datetime import datetime
from typing import Optional, Union

from trendwick.core.exceptions import MalformedTickError
from trendwick.models.signal import TradeSignal
from trendwick.models.tick import RawTick

CANDLES_ACTION = "candles"
TRADE_ACTION = "trade"


def parse_candles_message(
    text: Union[str, bytes], symbol: str, received_at: datetime
) -> Optional[RawTick]:
    """
    Decode a broker candle update into a RawTick.

    The payload carries no timestamp, so the receive time is used.

    Args:
        text: Raw WebSocket frame
        symbol: Asset the session is subscribed to
        received_at: Time the frame was received

    Returns:
        RawTick for "candles" messages, None for any other action

    Raises:
        MalformedTickError: If the frame is not JSON or the price array is
            missing, too short or not numeric
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedTickError(f"Message is not valid JSON: {e}") from e

    if not isinstance(payload, dict) or payload.get("action") != CANDLES_ACTION:
        return None

    prices = payload.get("message")
    if not isinstance(prices, list) or len(prices) < 4:
        raise MalformedTickError(
            f"'candles' message must carry [open, close, high, low], got {prices!r}"
        )

    try:
        open_, close, high, low = (float(p) for p in prices[:4])
    except (TypeError, ValueError) as e:
        raise MalformedTickError(f"Non-numeric price in 'candles' message: {e}") from e

    return RawTick(
        symbol=symbol,
        timestamp=received_at,
        open=open_,
        high=high,
        low=low,
        close=close,
    )


def encode_trade_message(signal: TradeSignal) -> str:
    """Encode a signal as the broker trade message."""
    return signal.to_message()
