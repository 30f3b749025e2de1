"""Pydantic models for system/operational logs.

The 'time' field is not part of the model: ISO8601Formatter adds it during
serialization, so there is a single source of truth for timestamps.
"""

from __future__ import annotations

__all__ = ["SystemEvent"]

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class SystemEvent(BaseModel):
    """One system/operational log entry.

    Used by the transport and lifecycle manager for state transitions,
    handover progress and shutdown escalation.
    """

    model_config = ConfigDict(frozen=True)

    # --- core ---
    event: str  # machine-friendly event name
    message: Optional[str] = None  # human-readable description

    # --- component / context ---
    component: Optional[str] = None  # "transport", "lifecycle", "approval"
    port: Optional[int] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    request_id: Optional[str | int] = None

    # --- error details ---
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    # --- extra ---
    details: Optional[dict[str, Any]] = None
