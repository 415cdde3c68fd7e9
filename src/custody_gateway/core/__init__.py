# Core Module - Shared Utilities
#
# Core module provides shared functionality across the gateway:
# - Operational event logging
# - SQLite connection handling

from .event_log import (
    EventLogger,
    EventSeverity,
    EventType,
    configure_event_logger,
    get_event_logger,
    log_gateway_event,
)

__all__ = [
    "EventLogger",
    "EventType",
    "EventSeverity",
    "configure_event_logger",
    "get_event_logger",
    "log_gateway_event",
]
