"""
Closed-candle analysers (trend classification, wick patterns)
"""

from .trend_classifier import TrendClassifier
from .wick_pattern import WickPatternDetector

__all__ = ["TrendClassifier", "WickPatternDetector"]
