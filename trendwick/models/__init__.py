"""
Data models package
"""

from .candle import Candle
from .signal import SignalDirection, TradeSignal
from .tick import RawTick
from .timeframe import Timeframe
from .trend import TrendDirection, TrendState
from .wick import WickEvent, WickKind

__all__ = [
    "Candle",
    "RawTick",
    "Timeframe",
    "TrendDirection",
    "TrendState",
    "WickEvent",
    "WickKind",
    "SignalDirection",
    "TradeSignal",
]
