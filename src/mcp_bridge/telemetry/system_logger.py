"""System logger for operational events.

This module provides a singleton system logger for all operational events of
the bridge (transport status transitions, handover progress, idle shutdown,
policy denials caused by rate limiting).

Logging strategy:
- Console (stderr): ALL operational messages (INFO and above by default)
- File (system.jsonl): Only issues (WARNING, ERROR, CRITICAL)

The file handler is configured separately via configure_system_logger_file()
once the log directory from config is known.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "SYSTEM_LOG_FILENAME",
    "configure_system_logger_file",
    "flush_system_logger",
    "get_system_logger",
    "log_event",
    "set_console_level",
]

import logging
import sys
from pathlib import Path

from mcp_bridge.constants import APP_NAME
from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.utils.logging.iso_formatter import ISO8601Formatter

SYSTEM_LOG_FILENAME = "system.jsonl"


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human-readable console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


# Module-level singleton logger - initialized on first use
_system_logger: logging.Logger | None = None
_console_handler: logging.Handler | None = None
_file_handler_configured: bool = False


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with stderr handler only.
    File handler is added later via configure_system_logger_file().

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "no_pending_response", "request_id": 7})
    """
    global _system_logger, _console_handler

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(APP_NAME)
    _system_logger.setLevel(logging.DEBUG)
    _system_logger.propagate = False

    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(logging.INFO)
    _console_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(_console_handler)

    return _system_logger


def set_console_level(level: str | int) -> None:
    """Change the stderr handler threshold (e.g. "DEBUG" from config)."""
    get_system_logger()
    if _console_handler is not None:
        _console_handler.setLevel(level)


def configure_system_logger_file(log_dir: Path) -> Path:
    """Add the JSONL file handler writing to <log_dir>/system.jsonl.

    Called once after config is loaded. The file handler logs WARNING and
    above only, so the persistent log holds issues rather than routine noise.

    Args:
        log_dir: Directory for the system log file.

    Returns:
        Path of the system log file.
    """
    global _file_handler_configured

    log_path = log_dir / SYSTEM_LOG_FILENAME
    if _file_handler_configured:
        return log_path

    logger = get_system_logger()

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        if sys.platform != "win32":
            log_dir.chmod(0o700)
    except OSError:
        pass  # stderr will still work

    try:
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="file_logging_failed",
                message="Failed to configure file logging",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return log_path

    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ISO8601Formatter())
    logger.addHandler(file_handler)
    _file_handler_configured = True
    return log_path


def log_event(level: int, event: SystemEvent) -> None:
    """Log a SystemEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.
    The ISO8601Formatter adds the timestamp during serialization.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
    """
    get_system_logger().log(level, event.model_dump(exclude_none=True))


def flush_system_logger() -> None:
    """Flush all handlers; used right before forced process termination."""
    for handler in get_system_logger().handlers:
        handler.flush()
