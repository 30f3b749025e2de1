"""Shared fixtures for mcp-bridge tests."""

from __future__ import annotations

import socket

import pytest

from mcp_bridge.config import HandoverConfig


@pytest.fixture
def free_port() -> int:
    """A port that was free a moment ago on 127.0.0.1."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


@pytest.fixture
def fast_handover() -> HandoverConfig:
    """Handover settings with a shorter settle delay than production."""
    return HandoverConfig(settle_delay_seconds=0.5, request_timeout_seconds=2.0)
