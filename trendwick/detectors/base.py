"""
Base detector interface
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from trendwick.models.candle import Candle


class BaseDetector(ABC):
    """
    Abstract base class for closed-candle detectors.

    One detector instance belongs to exactly one asset and is fed closed
    candles in arrival order.
    """

    def __init__(self, name: str, symbol: str):
        self.name = name
        self.symbol = symbol
        self.logger = logging.getLogger(__name__)

    @abstractmethod
    def on_candle_closed(self, candle: Candle) -> Any:
        """
        Update detector state from a closed candle

        Args:
            candle: Closed candle of this detector's asset

        Returns:
            Detector-specific result
        """

    @abstractmethod
    def reset(self) -> None:
        """Drop all accumulated state."""

    def _accepts(self, candle: Candle, timeframe) -> bool:
        """Common guard: closed candle of the expected asset and timeframe."""
        if not candle.is_closed:
            self.logger.warning(
                f"[{self.name}] Ignoring open {candle.timeframe.value} candle for {candle.symbol}"
            )
            return False
        if candle.symbol != self.symbol:
            self.logger.warning(
                f"[{self.name}] Ignoring candle for {candle.symbol}, detector bound to {self.symbol}"
            )
            return False
        return candle.timeframe is timeframe
