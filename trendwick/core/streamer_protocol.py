"""
Data streamer protocol for feed sessions.

Defines the interface every tick feed implements so the bootstrap code can
start and stop it without knowing the transport.
"""

from abc import ABC, abstractmethod


class IDataStreamer(ABC):
    """
    Abstract base class for WebSocket tick feeds.

    Implementations must handle:
    - Connection lifecycle (start/stop)
    - Connection status reporting
    - Graceful cleanup

    Implementations:
        - TickStreamer: Binance USDT-M futures aggregated trades
    """

    @abstractmethod
    async def start(self) -> None:
        """
        Start streaming.

        Should be idempotent (safe to call multiple times).

        Raises:
            ConnectionError: If the connection cannot be established
        """

    @abstractmethod
    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop streaming and release resources.

        Should be idempotent (safe to call multiple times).

        Args:
            timeout: Maximum time in seconds to wait for cleanup (default: 5.0)
        """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True if the connection is established and healthy."""
