"""
trendwick - multi-timeframe trend and reversal-wick signal engine
Main package initialization
"""

__version__ = "0.1.0"

from trendwick.utils.config import ConfigManager
from trendwick.utils.logger import TradingLogger

__all__ = ["ConfigManager", "TradingLogger"]
