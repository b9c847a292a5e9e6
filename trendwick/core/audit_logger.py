"""
Audit logging for rejected ticks, feed health, trend changes and signals.

Structured JSON Lines records, one object per line, for later analysis
with jq/grep or a log aggregation system.
"""
import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class AuditEventType(Enum):
    """Types of audit events that can be logged."""
    # Input events
    TICK_REJECTED = "tick_rejected"

    # Feed health
    FEED_STALE = "feed_stale"
    FEED_RECOVERED = "feed_recovered"

    # Decision flow events
    TREND_CHANGED = "trend_changed"
    SIGNAL_ISSUED = "signal_issued"
    ENGINE_RESET = "engine_reset"


class AuditLogger:
    """
    Structured audit logger for the signal pipeline.

    Example log entry:
        {
            "timestamp": "2025-12-17T10:30:45.123456",
            "event_type": "tick_rejected",
            "operation": "ingest",
            "symbol": "BTCUSDT",
            "error": {"reason": "late_data", "message": "..."}
        }
    """

    def __init__(self, log_dir: str = "logs/audit"):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit log files (default: logs/audit).
                    Relative paths resolve against the project root.
        """
        project_root = Path(__file__).resolve().parent.parent.parent

        self.log_dir = Path(log_dir)
        if not self.log_dir.is_absolute():
            self.log_dir = project_root / self.log_dir

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.log_dir / f"audit_{datetime.now().strftime('%Y%m%d')}.jsonl"

        # Unique logger per instance, kept out of the root handlers
        self.logger = logging.getLogger(f"audit_{id(self)}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        self._handler = logging.FileHandler(self.log_file)
        self._handler.setFormatter(logging.Formatter("%(message)s"))
        self.logger.addHandler(self._handler)

    def log_event(
        self,
        event_type: AuditEventType,
        operation: str,
        symbol: Optional[str] = None,
        error: Optional[Dict[str, Any]] = None,
        additional_data: Optional[Dict[str, Any]] = None,
    ):
        """
        Log an audit event in JSON format.

        Args:
            event_type: Type of audit event (from AuditEventType enum)
            operation: Operation name (e.g., "ingest", "decide")
            symbol: Asset identifier if applicable
            error: Error details if an error occurred
            additional_data: Any additional context data
        """
        event = {
            "timestamp": datetime.now().isoformat(),
            "event_type": event_type.value,
            "operation": operation,
        }

        if symbol:
            event["symbol"] = symbol
        if error:
            event["error"] = error
        if additional_data:
            event["additional_data"] = additional_data

        self.logger.info(json.dumps(event, default=str))

    def log_tick_rejected(self, symbol: str, reason: str, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Log a tick refused at the aggregator boundary.

        Args:
            symbol: Asset identifier
            reason: 'malformed_input' or 'late_data'
            message: Human-readable error
            details: Bucket information etc.
        """
        self.log_event(
            event_type=AuditEventType.TICK_REJECTED,
            operation="ingest",
            symbol=symbol,
            error={"reason": reason, "message": message},
            additional_data=details,
        )

    def log_signal_issued(self, symbol: str, signal_data: Dict[str, Any]):
        self.log_event(
            event_type=AuditEventType.SIGNAL_ISSUED,
            operation="decide",
            symbol=symbol,
            additional_data=signal_data,
        )

    def close(self) -> None:
        """Detach and close the file handler."""
        self.logger.removeHandler(self._handler)
        self._handler.close()
