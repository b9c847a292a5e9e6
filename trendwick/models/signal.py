"""
Trade signal model
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from .trend import TrendDirection
from .wick import WickEvent


class SignalDirection(Enum):
    """Directional trade recommendation."""

    CALL = "call"
    PUT = "put"


@dataclass(frozen=True)
class TradeSignal:
    """
    Signal handed to the execution collaborator.

    Attributes:
        symbol: Asset identifier
        direction: CALL (trend up + long tail) or PUT (trend down + long head)
        issued_at: Logical time the signal was issued
        trend_direction: Trend direction the engine was armed with
        wick_event: Wick event that triggered the signal
        price: Reference price (close of the triggering candle)
    """

    symbol: str
    direction: SignalDirection
    issued_at: datetime
    trend_direction: TrendDirection
    wick_event: WickEvent
    price: float

    def __post_init__(self) -> None:
        """Validate direction/basis consistency."""
        expected = {
            SignalDirection.CALL: TrendDirection.UP,
            SignalDirection.PUT: TrendDirection.DOWN,
        }[self.direction]
        if self.trend_direction is not expected:
            raise ValueError(
                f"{self.direction.value.upper()} requires trend {expected.value}, "
                f"got {self.trend_direction.value}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for structured logs."""
        return {
            "symbol": self.symbol,
            "direction": self.direction.value,
            "issued_at": self.issued_at.isoformat(),
            "price": self.price,
            "trend": self.trend_direction.value,
            "wick_kind": self.wick_event.kind.value,
            "wick_ratio": round(self.wick_event.ratio, 6),
            "candle_open_time": self.wick_event.candle_open_time.isoformat(),
        }

    def to_message(self) -> str:
        """Broker wire message: {"action": "trade", "direction": ..., "price": ...}."""
        return json.dumps(
            {
                "action": "trade",
                "direction": self.direction.value,
                "price": self.price,
            }
        )
