"""
Tests for StalenessMonitor.
"""

from datetime import datetime, timedelta, timezone

import pytest

from trendwick.core.staleness import StalenessMonitor

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def monitor():
    return StalenessMonitor(timedelta(seconds=30))


class TestStalenessMonitor:
    def test_first_check_without_ticks_starts_the_clock(self, monitor):
        assert monitor.silence(at(0)) is None
        assert monitor.check(at(1000)) is None
        assert monitor.is_stale is False
        assert monitor.silence(at(1010)) == timedelta(seconds=10)

    def test_feed_that_never_delivers_is_stale(self, monitor):
        monitor.check(at(0))

        assert monitor.check(at(30)) is None
        assert monitor.check(at(3600)) == timedelta(seconds=3600)
        assert monitor.is_stale is True
        assert monitor.last_seen is None

    def test_first_tick_replaces_watch_start(self, monitor):
        monitor.check(at(0))
        monitor.touch(at(25))

        assert monitor.check(at(50)) is None
        assert monitor.silence(at(50)) == timedelta(seconds=25)

    def test_within_threshold_is_not_stale(self, monitor):
        monitor.touch(at(0))
        assert monitor.check(at(30)) is None

    def test_silence_beyond_threshold_is_stale(self, monitor):
        monitor.touch(at(0))

        silence = monitor.check(at(31))

        assert silence == timedelta(seconds=31)
        assert monitor.is_stale is True

    def test_touch_ends_stale_episode(self, monitor):
        monitor.touch(at(0))
        monitor.check(at(45))

        assert monitor.touch(at(50)) is True
        assert monitor.is_stale is False
        assert monitor.touch(at(51)) is False

    def test_last_seen_never_moves_backwards(self, monitor):
        monitor.touch(at(20))
        monitor.touch(at(15))
        assert monitor.last_seen == at(20)

    def test_reset(self, monitor):
        monitor.touch(at(0))
        monitor.check(at(100))
        monitor.reset()

        assert monitor.last_seen is None
        assert monitor.is_stale is False
        assert monitor.silence(at(200)) is None
