"""Response models for the bridge HTTP endpoints."""

from __future__ import annotations

__all__ = [
    "FrozenModel",
    "PingResponse",
    "SuccessResponse",
]

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FrozenModel(BaseModel):
    """Base class for immutable response models."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PingResponse(FrozenModel):
    """Response for GET /ping.

    Attributes:
        status: Always "ok" while the endpoint is reachable.
        timestamp: ISO 8601 UTC time the ping was answered.
        server_running: Whether the transport reports itself running.
    """

    status: Literal["ok"] = "ok"
    timestamp: str
    server_running: bool = Field(alias="serverRunning")


class SuccessResponse(FrozenModel):
    """Acknowledgement for handover, tool notifications and inbound notifications."""

    success: bool = True
