"""Idle timeout and shutdown handling for a running bridge."""

from mcp_bridge.lifecycle.manager import LifecycleManager, LifecycleStatus

__all__ = [
    "LifecycleManager",
    "LifecycleStatus",
]
