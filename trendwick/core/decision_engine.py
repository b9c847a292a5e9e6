"""
Signal decision state machine (one instance per tracked asset).

States:
    IDLE      no active trend
    ARMED     trend confirmed, waiting for a confirming wick event
    COOLDOWN  a signal was issued, nothing is emitted until the window ends

Transitions:
    IDLE     --trend UP/DOWN-->                  ARMED(direction)
    ARMED    --matching wick-->                  COOLDOWN(now + cooldown), emit signal
    ARMED    --trend NONE or flipped-->          IDLE
    COOLDOWN --now >= until, trend active-->     ARMED(trend)
    COOLDOWN --now >= until, no trend-->         IDLE
"""

import logging
from collections import deque
from datetime import datetime, timedelta
from enum import Enum
from typing import Deque, Optional, Tuple

from trendwick.core.exceptions import ConfigurationError
from trendwick.models.signal import SignalDirection, TradeSignal
from trendwick.models.timeframe import ensure_utc
from trendwick.models.trend import TrendDirection, TrendState
from trendwick.models.wick import WickEvent, WickKind

# Trend direction -> (confirming wick, signal direction)
_CONFIRMATIONS = {
    TrendDirection.UP: (WickKind.LONG_TAIL, SignalDirection.CALL),
    TrendDirection.DOWN: (WickKind.LONG_HEAD, SignalDirection.PUT),
}

# Issued signals kept per asset for inspection
SIGNAL_HISTORY_SIZE = 100


class EngineState(Enum):
    """Decision engine states."""

    IDLE = "idle"
    ARMED = "armed"
    COOLDOWN = "cooldown"


class SignalDecisionEngine:
    """
    Combine the latest trend with wick events into at most one signal per
    cooldown window.

    Time is supplied by the caller on every call (normally the timestamp of
    the tick being processed), so the engine never reads a clock itself.
    """

    def __init__(self, symbol: str, cooldown: timedelta) -> None:
        """
        Args:
            symbol: Asset identifier
            cooldown: Minimum spacing between two signals

        Raises:
            ConfigurationError: If cooldown is not positive
        """
        if cooldown <= timedelta(0):
            raise ConfigurationError(f"cooldown must be positive, got {cooldown}")

        self.symbol = symbol
        self.cooldown = cooldown

        self._state = EngineState.IDLE
        self._armed_direction: Optional[TrendDirection] = None
        self._cooldown_until: Optional[datetime] = None
        self._trend = TrendDirection.NONE
        self._history: Deque[TradeSignal] = deque(maxlen=SIGNAL_HISTORY_SIZE)

        self.logger = logging.getLogger(__name__)

    # --- Properties ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def armed_direction(self) -> Optional[TrendDirection]:
        return self._armed_direction

    @property
    def cooldown_until(self) -> Optional[datetime]:
        return self._cooldown_until

    @property
    def trend(self) -> TrendDirection:
        """Latest observed trend direction (tracked in every state)."""
        return self._trend

    @property
    def last_signal(self) -> Optional[TradeSignal]:
        return self._history[-1] if self._history else None

    @property
    def recent_signals(self) -> Tuple[TradeSignal, ...]:
        """Issued signals, oldest first (bounded by SIGNAL_HISTORY_SIZE)."""
        return tuple(self._history)

    # --- Transitions ---

    def poll(self, now: datetime) -> EngineState:
        """
        Apply time-driven transitions (cooldown expiry).

        Args:
            now: Current logical time

        Returns:
            State after the check
        """
        if self._state is EngineState.COOLDOWN and ensure_utc(now) >= self._cooldown_until:
            self._cooldown_until = None
            if self._trend in _CONFIRMATIONS:
                self._arm(self._trend, reason="cooldown elapsed, trend still active")
            else:
                self._to_idle(reason="cooldown elapsed")
        return self._state

    def on_trend(self, trend: TrendState, now: datetime) -> EngineState:
        """
        Observe a new trend state.

        Args:
            trend: State returned by the trend classifier
            now: Current logical time

        Returns:
            State after the transition
        """
        self.poll(now)
        self._trend = trend.direction

        if self._state is EngineState.IDLE:
            if trend.direction in _CONFIRMATIONS:
                self._arm(trend.direction, reason="trend confirmed")

        elif self._state is EngineState.ARMED:
            if trend.direction is not self._armed_direction:
                self._to_idle(
                    reason=f"trend changed {self._armed_direction.value} -> {trend.direction.value}"
                )

        return self._state

    def on_wick_event(self, event: WickEvent, now: datetime) -> Optional[TradeSignal]:
        """
        Observe a wick event and decide whether to signal.

        Args:
            event: Detected wick pattern
            now: Current logical time (becomes ``issued_at``)

        Returns:
            TradeSignal if ARMED and the event confirms the armed direction,
            None otherwise
        """
        now = ensure_utc(now)
        self.poll(now)

        if self._state is not EngineState.ARMED:
            self.logger.debug(
                f"[{self.symbol}] {event.kind.value} ignored in state {self._state.value}"
            )
            return None

        expected_kind, signal_direction = _CONFIRMATIONS[self._armed_direction]
        if event.kind is not expected_kind:
            self.logger.debug(
                f"[{self.symbol}] {event.kind.value} does not confirm "
                f"{self._armed_direction.value} trend"
            )
            return None

        signal = TradeSignal(
            symbol=self.symbol,
            direction=signal_direction,
            issued_at=now,
            trend_direction=self._armed_direction,
            wick_event=event,
            price=event.price,
        )
        self._history.append(signal)

        self._state = EngineState.COOLDOWN
        self._armed_direction = None
        self._cooldown_until = now + self.cooldown

        self.logger.info(
            f"[{self.symbol}] {signal_direction.value.upper()} signal @ {event.price} "
            f"(trend={signal.trend_direction.value}, {event.kind.value} ratio={event.ratio:.2f}), "
            f"cooldown until {self._cooldown_until.isoformat()}"
        )
        return signal

    def reset(self) -> None:
        """
        Force the engine out of ARMED and forget the trend.

        A running cooldown is kept so a reset can never shorten the window
        between two signals; it ends in IDLE instead of re-arming.
        """
        self._trend = TrendDirection.NONE
        if self._state is EngineState.ARMED:
            self._to_idle(reason="forced reset")

    # --- Internals ---

    def _arm(self, direction: TrendDirection, reason: str) -> None:
        self._state = EngineState.ARMED
        self._armed_direction = direction
        self.logger.debug(f"[{self.symbol}] ARMED({direction.value}): {reason}")

    def _to_idle(self, reason: str) -> None:
        self._state = EngineState.IDLE
        self._armed_direction = None
        self.logger.debug(f"[{self.symbol}] IDLE: {reason}")
