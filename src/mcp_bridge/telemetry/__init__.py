"""System operational logging.

Provides the system logger and the structured event model used across the
transport, lifecycle and approval packages.
"""

from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.telemetry.system_logger import (
    ConsoleFormatter,
    configure_system_logger_file,
    flush_system_logger,
    get_system_logger,
    log_event,
    set_console_level,
)

__all__ = [
    "ConsoleFormatter",
    "SystemEvent",
    "configure_system_logger_file",
    "flush_system_logger",
    "get_system_logger",
    "log_event",
    "set_console_level",
]
