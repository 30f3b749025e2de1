"""Server status of a bridge transport."""

from __future__ import annotations

__all__ = ["ServerStatus"]

from enum import Enum


class ServerStatus(str, Enum):
    """Four-state status of a transport.

    stopped --start()--> starting --bind success--> running
    running --close() / bind failure / fatal error--> stopped
    running --tools updated notification--> tool_list_updated
    tool_list_updated --client lists tools--> running
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    TOOL_LIST_UPDATED = "tool_list_updated"
