"""
Tests for WickPatternDetector (long tail / long head).
"""

from datetime import datetime, timedelta, timezone

import pytest

from trendwick.core.exceptions import ConfigurationError
from trendwick.detectors.wick_pattern import WickPatternDetector
from trendwick.models.candle import Candle
from trendwick.models.timeframe import Timeframe
from trendwick.models.wick import WickKind

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def fine(open_, high, low, close, timeframe=Timeframe.FINE, **kwargs) -> Candle:
    defaults = dict(
        symbol="BTCUSDT",
        timeframe=timeframe,
        open_time=T0,
        close_time=T0 + timedelta(seconds=10),
        is_closed=True,
    )
    defaults.update(kwargs)
    return Candle(open=open_, high=high, low=low, close=close, **defaults)


@pytest.fixture
def detector():
    return WickPatternDetector("BTCUSDT", ratio_threshold=2.0)


class TestLongTail:
    def test_reference_long_tail(self, detector):
        # tail=5, body=1, head=0.5
        event = detector.on_candle_closed(fine(100, 101.5, 95, 101))

        assert event is not None
        assert event.kind is WickKind.LONG_TAIL
        assert event.ratio == pytest.approx(5.0)
        assert event.price == 101
        assert event.candle_open_time == T0
        assert event.timeframe is Timeframe.FINE

    def test_tail_exactly_at_threshold(self, detector):
        # tail=2, body=1
        event = detector.on_candle_closed(fine(100, 101, 98, 101))
        assert event.kind is WickKind.LONG_TAIL

    def test_tail_below_threshold(self, detector):
        # tail=1.5, body=1
        assert detector.on_candle_closed(fine(100, 101, 98.5, 101)) is None

    def test_bearish_body_uses_close_for_tail(self, detector):
        # open=101 close=100: tail = 100 - 97 = 3, body 1, head 0
        event = detector.on_candle_closed(fine(101, 101, 97, 100))
        assert event.kind is WickKind.LONG_TAIL


class TestLongHead:
    def test_long_head(self, detector):
        # head=4, body=1, tail=0.5
        event = detector.on_candle_closed(fine(101, 105, 99.5, 100))

        assert event.kind is WickKind.LONG_HEAD
        assert event.ratio == pytest.approx(4.0)

    def test_head_not_longer_than_tail(self, detector):
        # head == tail == 3, body 1: neither side wins
        assert detector.on_candle_closed(fine(100, 104, 97, 101)) is None


class TestDoji:
    def test_doji_without_floor_uses_ratio_only(self, detector):
        event = detector.on_candle_closed(fine(100, 100.01, 99, 100))
        assert event.kind is WickKind.LONG_TAIL

    def test_doji_requires_absolute_floor(self):
        detector = WickPatternDetector("BTCUSDT", ratio_threshold=2.0, min_absolute_wick=2.0)

        assert detector.on_candle_closed(fine(100, 100, 99, 100)) is None

        event = detector.on_candle_closed(fine(100, 100, 97.5, 100))
        assert event.kind is WickKind.LONG_TAIL

    def test_flat_candle_emits_nothing(self, detector):
        assert detector.on_candle_closed(fine(100, 100, 100, 100)) is None

    def test_floor_not_applied_to_regular_body(self):
        detector = WickPatternDetector("BTCUSDT", ratio_threshold=2.0, min_absolute_wick=10.0)
        event = detector.on_candle_closed(fine(100, 101.5, 95, 101))
        assert event.kind is WickKind.LONG_TAIL


class TestTimeframeAndGuards:
    def test_other_timeframe_ignored(self, detector):
        assert detector.on_candle_closed(fine(100, 101.5, 95, 101, timeframe=Timeframe.MID)) is None

    def test_mid_detector_accepts_mid_candles(self):
        detector = WickPatternDetector("BTCUSDT", timeframe=Timeframe.MID)
        event = detector.on_candle_closed(fine(100, 101.5, 95, 101, timeframe=Timeframe.MID))
        assert event.timeframe is Timeframe.MID

    def test_open_candle_ignored(self, detector):
        assert detector.on_candle_closed(fine(100, 101.5, 95, 101, is_closed=False)) is None

    @pytest.mark.parametrize(
        "kwargs",
        [{"ratio_threshold": 0}, {"min_absolute_wick": -1}, {"epsilon": 0}],
    )
    def test_invalid_parameters_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            WickPatternDetector("BTCUSDT", **kwargs)
