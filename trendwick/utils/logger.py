"""
Logging configuration with multi-handler setup and structured signal logging
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Generator

SIGNAL_LOGGER_NAME = "signals"


class SignalLogFilter(logging.Filter):
    """
    Filter to isolate signal events from general logging

    Only allows log records from the 'signals' logger to reach the
    signal-specific handler.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Determine if log record should be processed

        Args:
            record: Log record to evaluate

        Returns:
            True if record.name == 'signals', False otherwise
        """
        return record.name == SIGNAL_LOGGER_NAME


class TradingLogger:
    """
    Centralized logging system for the signal engine

    Features:
    - Multi-handler logging (console, file, signal-specific)
    - Automatic log rotation (size-based and time-based)
    - Structured JSON logging for signal events
    """

    def __init__(self, config: dict):
        """
        Initialize logging infrastructure

        Args:
            config: Configuration dictionary with keys:
                - log_level: str (DEBUG, INFO, WARNING, ERROR)
                - log_dir: str (directory path for log files)
                - log_signals: bool (write signals.log, default True)

        Raises:
            OSError: If log directory creation fails
        """
        self.log_level = config.get("log_level", "INFO")
        self.log_signals = config.get("log_signals", True)

        # Relative log_dir is interpreted against the project root
        project_root = Path(__file__).resolve().parent.parent.parent
        self.log_dir = Path(config.get("log_dir", "logs"))
        if not self.log_dir.is_absolute():
            self.log_dir = project_root / self.log_dir

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._setup_logging()

    def _setup_logging(self) -> None:
        """
        Configure root logger with all handlers

        Sets up:
        1. Console handler (INFO+, simple format)
        2. Rotating file handler (DEBUG+, detailed format)
        3. Signal handler (INFO, JSON lines, daily rotation) if enabled
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.log_level.upper()))

        # Clear existing handlers to avoid duplicates
        root_logger.handlers.clear()

        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        # 10MB max, 5 backups
        file_handler = RotatingFileHandler(
            self.log_dir / "trendwick.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        if self.log_signals:
            # Daily rotation, 30-day retention
            signal_handler = TimedRotatingFileHandler(
                self.log_dir / "signals.log",
                when="midnight",
                backupCount=30,
            )
            signal_handler.setLevel(logging.INFO)
            signal_handler.addFilter(SignalLogFilter())
            root_logger.addHandler(signal_handler)

    @staticmethod
    def log_signal(action: str, data: dict) -> None:
        """
        Log signal events in structured JSON format

        Args:
            action: Event type (SIGNAL_ISSUED, TREND_CHANGED, ...)
            data: Event-specific data dictionary

        Example:
            TradingLogger.log_signal('SIGNAL_ISSUED', {
                'symbol': 'BTCUSDT',
                'direction': 'call',
                'price': 101.0,
            })
        """
        logger = logging.getLogger(SIGNAL_LOGGER_NAME)
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            **data,
        }
        logger.info(json.dumps(log_entry, default=str))


@contextmanager
def log_execution_time(operation: str) -> Generator[None, None, None]:
    """
    Context manager for measuring and logging execution time

    Args:
        operation: Human-readable operation description

    Usage:
        with log_execution_time('tick_processing'):
            pipeline.process(tick)

    Logs at DEBUG level: "{operation} completed in {elapsed:.3f}s"
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logging.debug(f"{operation} completed in {elapsed:.3f}s")
