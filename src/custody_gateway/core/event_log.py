# Core - Operational Event Log
#
# Structured record of gateway security events for operators: startup and
# shutdown, credential submissions, decryption failures, provider failures,
# ledger write failures. This is separate from the case ledger (the
# per-user audit trail stored in the database).
#
# Events never carry secret values: only user ids, slot names, capability
# names and error kinds.

import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of gateway events that can be logged."""

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"

    # Credential Events
    CREDENTIALS_STORED = "credentials.stored"
    CREDENTIALS_MISSING = "credentials.missing"
    DECRYPTION_FAILED = "credentials.decryption_failed"

    # Provider Events
    PROVIDER_CALL = "provider.call"
    PROVIDER_FAILED = "provider.failed"
    PROVIDER_TIMEOUT = "provider.timeout"

    # Ledger Events
    LEDGER_WRITE_FAILED = "ledger.write_failed"


class EventSeverity(str, Enum):
    """
    Severity levels for gateway events.

    - INFO: Normal activity
    - WARNING: A request failed for a reason outside the gateway
    - ERROR: A request failed inside the gateway
    - CRITICAL: The audit trail is incomplete or data is unreadable
    """
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_log_level(self) -> int:
        return {
            EventSeverity.INFO: logging.INFO,
            EventSeverity.WARNING: logging.WARNING,
            EventSeverity.ERROR: logging.ERROR,
            EventSeverity.CRITICAL: logging.CRITICAL,
        }[self]


class EventLogger:
    """
    Append-only structured event logger.

    Features:
    - Structured JSON lines via structlog
    - Automatic UTC timestamp and event ID
    - Daily log file under ``log_dir``
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize event logger.

        Args:
            log_dir: Directory for event logs (default: ./logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("custody_gateway.events")

    def _setup_file_handler(self):
        """Attach a daily log file to the events logger (once per path)."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"events_{today}.log"

        events_logger = logging.getLogger("custody_gateway.events")
        events_logger.setLevel(logging.INFO)
        for handler in events_logger.handlers:
            if getattr(handler, "baseFilename", None) == str(self.log_file.resolve()):
                return

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting
        events_logger.addHandler(file_handler)

    def close(self):
        """Detach and close this logger's file handler."""
        events_logger = logging.getLogger("custody_gateway.events")
        target = str(self.log_file.resolve())
        for handler in list(events_logger.handlers):
            if getattr(handler, "baseFilename", None) == target:
                events_logger.removeHandler(handler)
                handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a gateway event.

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secret values)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        self.logger.log(
            severity.to_log_level(),
            "gateway_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            details=details or {},
        )
        return event_id


# Global logger instance
_event_logger: Optional[EventLogger] = None


def configure_event_logger(log_dir: Optional[Path] = None) -> EventLogger:
    """Replace the global event logger with one writing to ``log_dir``."""
    global _event_logger
    if _event_logger is not None:
        _event_logger.close()
    _event_logger = EventLogger(log_dir=log_dir)
    return _event_logger


def get_event_logger() -> EventLogger:
    """Get global event logger (singleton pattern)."""
    global _event_logger
    if _event_logger is None:
        _event_logger = EventLogger()
    return _event_logger


def log_gateway_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging gateway events.

    Usage:
        log_gateway_event(
            EventType.PROVIDER_FAILED,
            EventSeverity.WARNING,
            "Chat completion failed",
            details={"user_id": "u1", "kind": "provider_unavailable"}
        )
    """
    return get_event_logger().log_event(event_type, severity, message, **kwargs)
