"""Log formatting utilities for JSONL output.

Provides ISO 8601 timestamp formatting for JSONL logs.
"""

from __future__ import annotations

__all__ = ["ISO8601Formatter", "utc_timestamp"]

import json
import logging
from datetime import datetime, timezone


def utc_timestamp(epoch_seconds: float | None = None) -> str:
    """Format an epoch timestamp (default: now) as ISO 8601 UTC with milliseconds.

    Example: 2025-12-04T10:48:37.123Z
    """
    moment = (
        datetime.now(timezone.utc)
        if epoch_seconds is None
        else datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    )
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ISO8601Formatter(logging.Formatter):
    """Custom formatter with ISO 8601 timestamps (UTC) for JSONL output.

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSONL with ISO 8601 timestamp.

        Args:
            record: The log record to format

        Returns:
            str: JSON-formatted log entry with timestamp
        """
        timestamp = utc_timestamp(record.created)

        # Structured logging: dict messages are written as-is
        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"level": record.levelname, "message": record.getMessage()}

        log_entry = {"time": timestamp, **log_data}
        return json.dumps(log_entry, default=str)
