"""
Unit tests for AuditLogger.
"""

import json
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from trendwick.core.audit_logger import AuditEventType, AuditLogger


def read_entries(audit_logger):
    with open(audit_logger.log_file) as f:
        return [json.loads(line) for line in f if line.strip()]


class TestAuditLogger:
    """Test cases for AuditLogger class."""

    @pytest.fixture
    def temp_log_dir(self):
        temp_dir = tempfile.mkdtemp()
        yield temp_dir
        shutil.rmtree(temp_dir)

    @pytest.fixture
    def audit_logger(self, temp_log_dir):
        logger = AuditLogger(log_dir=temp_log_dir)
        yield logger
        logger.close()

    def test_audit_logger_initialization(self, audit_logger, temp_log_dir):
        assert Path(temp_log_dir).exists()
        assert audit_logger.log_file.exists()
        assert audit_logger.log_file.name == f"audit_{datetime.now().strftime('%Y%m%d')}.jsonl"

    def test_log_event_basic(self, audit_logger):
        audit_logger.log_event(
            event_type=AuditEventType.TREND_CHANGED,
            operation="classify",
            symbol="BTCUSDT",
            additional_data={"from": "none", "to": "up"},
        )

        entry = read_entries(audit_logger)[0]

        assert entry["event_type"] == "trend_changed"
        assert entry["operation"] == "classify"
        assert entry["symbol"] == "BTCUSDT"
        assert entry["additional_data"] == {"from": "none", "to": "up"}
        assert "timestamp" in entry

    def test_optional_fields_omitted(self, audit_logger):
        audit_logger.log_event(event_type=AuditEventType.FEED_STALE, operation="check_staleness")

        entry = read_entries(audit_logger)[0]

        assert "symbol" not in entry
        assert "error" not in entry
        assert "additional_data" not in entry

    def test_log_tick_rejected(self, audit_logger):
        bucket = datetime(2024, 1, 1, 0, 0, 10)
        audit_logger.log_tick_rejected(
            symbol="BTCUSDT",
            reason="late_data",
            message="Late tick",
            details={"bucket_start": bucket},
        )

        entry = read_entries(audit_logger)[0]

        assert entry["event_type"] == "tick_rejected"
        assert entry["error"] == {"reason": "late_data", "message": "Late tick"}
        # datetimes are serialized with str()
        assert entry["additional_data"]["bucket_start"] == str(bucket)

    def test_log_signal_issued(self, audit_logger):
        audit_logger.log_signal_issued("ETHUSDT", {"direction": "put", "price": 2300.5})

        entry = read_entries(audit_logger)[0]

        assert entry["event_type"] == "signal_issued"
        assert entry["operation"] == "decide"
        assert entry["additional_data"]["direction"] == "put"

    def test_one_line_per_event(self, audit_logger):
        for _ in range(3):
            audit_logger.log_event(event_type=AuditEventType.ENGINE_RESET, operation="reset_decision")

        assert len(read_entries(audit_logger)) == 3

    def test_instances_do_not_share_handlers(self, temp_log_dir):
        first = AuditLogger(log_dir=temp_log_dir)
        second = AuditLogger(log_dir=temp_log_dir)

        first.log_event(event_type=AuditEventType.FEED_STALE, operation="check_staleness")

        assert first.logger is not second.logger
        assert len(read_entries(first)) == 1
        first.close()
        second.close()
