"""Logging utilities shared by the system logger."""

from .iso_formatter import ISO8601Formatter, utc_timestamp

__all__ = ["ISO8601Formatter", "utc_timestamp"]
