"""
Feed staleness tracking for one asset
"""

from datetime import datetime, timedelta
from typing import Optional

from trendwick.models.timeframe import ensure_utc


class StalenessMonitor:
    """
    Track the time of the last accepted tick and report silence.

    The feed is stale once no tick has been accepted for longer than
    ``stale_after``. Until the first tick, silence is measured from the
    first ``check()``, so a feed that never delivers is reported as well.
    """

    def __init__(self, stale_after: timedelta) -> None:
        self.stale_after = stale_after
        self._last_seen: Optional[datetime] = None
        self._watch_started: Optional[datetime] = None
        self._is_stale = False

    @property
    def last_seen(self) -> Optional[datetime]:
        return self._last_seen

    @property
    def is_stale(self) -> bool:
        return self._is_stale

    def touch(self, ts: datetime) -> bool:
        """
        Record an accepted tick.

        Returns:
            True if this tick ends a stale episode
        """
        ts = ensure_utc(ts)
        if self._last_seen is None or ts > self._last_seen:
            self._last_seen = ts

        recovered = self._is_stale
        self._is_stale = False
        return recovered

    def silence(self, now: datetime) -> Optional[timedelta]:
        """
        Time since the last accepted tick.

        Before the first tick this is the time since watching started, and
        None if ``check()`` has never been called either.
        """
        since = self._last_seen or self._watch_started
        if since is None:
            return None
        return ensure_utc(now) - since

    def check(self, now: datetime) -> Optional[timedelta]:
        """
        Evaluate staleness at ``now``.

        The first call without any accepted tick starts the silence clock.

        Returns:
            Silence duration if the feed is stale, None otherwise
        """
        now = ensure_utc(now)
        if self._last_seen is None and self._watch_started is None:
            self._watch_started = now

        silence = self.silence(now)
        if silence is None or silence <= self.stale_after:
            return None
        self._is_stale = True
        return silence

    def reset(self) -> None:
        self._last_seen = None
        self._watch_started = None
        self._is_stale = False
