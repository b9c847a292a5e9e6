"""
Unit tests for the logging system (TradingLogger, SignalLogFilter, log_execution_time)
"""

import json
import logging
import tempfile
from pathlib import Path

import pytest

from trendwick.utils.logger import SignalLogFilter, TradingLogger, log_execution_time


def make_record(name: str) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="test",
        args=(),
        exc_info=None,
    )


class TestSignalLogFilter:
    """Test SignalLogFilter class"""

    def test_filter_accepts_signals_logger(self):
        assert SignalLogFilter().filter(make_record("signals")) is True

    def test_filter_rejects_other_loggers(self):
        assert SignalLogFilter().filter(make_record("trendwick.core.pipeline")) is False
        assert SignalLogFilter().filter(make_record("root")) is False


class TestTradingLogger:
    """Test TradingLogger class"""

    def teardown_method(self):
        """Close and drop handlers installed on the root logger"""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            handler.close()
        root_logger.handlers.clear()

    def test_log_directory_creation(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir) / "test_logs"
            TradingLogger({"log_level": "INFO", "log_dir": str(log_dir)})

            assert log_dir.is_dir()
            self.teardown_method()

    def test_handler_types(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            TradingLogger({"log_level": "DEBUG", "log_dir": tmpdir})

            handlers = {type(h).__name__: h for h in logging.getLogger().handlers}

            assert set(handlers) == {"StreamHandler", "RotatingFileHandler", "TimedRotatingFileHandler"}
            assert handlers["StreamHandler"].level == logging.INFO
            assert handlers["RotatingFileHandler"].level == logging.DEBUG
            assert handlers["TimedRotatingFileHandler"].level == logging.INFO
            self.teardown_method()

    def test_signal_log_can_be_disabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            TradingLogger({"log_level": "INFO", "log_dir": tmpdir, "log_signals": False})

            handler_types = [type(h).__name__ for h in logging.getLogger().handlers]

            assert "TimedRotatingFileHandler" not in handler_types
            self.teardown_method()

    def test_root_logger_level(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            TradingLogger({"log_level": "WARNING", "log_dir": tmpdir})

            assert logging.getLogger().level == logging.WARNING
            self.teardown_method()

    def test_repeated_setup_does_not_duplicate_handlers(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            TradingLogger({"log_level": "INFO", "log_dir": tmpdir})
            TradingLogger({"log_level": "INFO", "log_dir": tmpdir})

            assert len(logging.getLogger().handlers) == 3
            self.teardown_method()

    def test_log_signal_writes_json_line(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            TradingLogger({"log_level": "INFO", "log_dir": tmpdir})

            TradingLogger.log_signal("SIGNAL_ISSUED", {"symbol": "BTCUSDT", "direction": "call", "price": 101.0})
            logging.getLogger("trendwick.test").info("not a signal")
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = (Path(tmpdir) / "signals.log").read_text().strip().splitlines()

            assert len(lines) == 1
            entry = json.loads(lines[0])
            assert entry["action"] == "SIGNAL_ISSUED"
            assert entry["symbol"] == "BTCUSDT"
            assert entry["direction"] == "call"
            assert "timestamp" in entry

            assert "not a signal" in (Path(tmpdir) / "trendwick.log").read_text()
            self.teardown_method()


class TestLogExecutionTime:
    def test_logs_elapsed_time_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with log_execution_time("tick_processing"):
                pass

        assert "tick_processing completed in" in caplog.text

    def test_logs_even_when_block_raises(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with pytest.raises(RuntimeError):
                with log_execution_time("failing_operation"):
                    raise RuntimeError("boom")

        assert "failing_operation completed in" in caplog.text
