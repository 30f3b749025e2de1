"""Custom exceptions for mcp-bridge.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into three categories:

Caller-facing Errors (surfaced to whoever invoked the operation):
    - PortBindError: start() could not bind the listening port
    - NoMessageHandlerError: inbound request arrived with no handler registered
    - TransportClosedError: transport closed while a request was held open
    - ConfigurationError: settings file is unreadable or invalid

Recovered Errors (handled internally, never propagated by themselves):
    - HandoverRejectedError: bound instance declined to release its port
    - HandoverUnreachableError: no instance answered the handover request

Escalation Signals (logged, drive the shutdown path):
    - ShutdownTimeoutError: graceful shutdown exceeded its bound

Rate-limit exhaustion and missing permissions are not errors: the policy
engine reports them as a normal False decision.

Usage:
    from mcp_bridge.exceptions import PortBindError, HandoverError
"""

from __future__ import annotations

__all__ = [
    "BridgeError",
    "ConfigurationError",
    "HandoverError",
    "HandoverRejectedError",
    "HandoverUnreachableError",
    "NoMessageHandlerError",
    "PortBindError",
    "ShutdownTimeoutError",
    "TransportClosedError",
]


class BridgeError(Exception):
    """Base class for all mcp-bridge errors."""


# =============================================================================
# Caller-facing Errors
# =============================================================================


class PortBindError(BridgeError):
    """The transport could not bind its listening port.

    Fatal to the start() call that raised it. The transport does not retry;
    retry and backoff policy belongs to the caller.

    Attributes:
        port: The port that was attempted.
        os_error: The underlying OS error from bind/listen.
    """

    def __init__(self, port: int, os_error: OSError) -> None:
        self.port = port
        self.os_error = os_error
        super().__init__(f"Failed to bind to port {port}: {os_error.strerror or os_error}")


class NoMessageHandlerError(BridgeError):
    """An inbound JSON-RPC message arrived but no handler is registered.

    Surfaced to the HTTP caller as a 500 response, never silently dropped.
    """

    def __init__(self) -> None:
        super().__init__("No message handler")


class TransportClosedError(BridgeError):
    """The transport closed while a correlated request was still waiting."""

    def __init__(self, request_id: str | int) -> None:
        self.request_id = request_id
        super().__init__(f"Transport closed before a response for id {request_id!r} was sent")


class ConfigurationError(BridgeError):
    """Configuration is invalid or unreadable.

    Raised when:
    - Settings file contains invalid JSON
    - Settings file fails Pydantic validation
    - Settings file exists but cannot be read
    """


# =============================================================================
# Recovered Errors (handover falls back to a direct start)
# =============================================================================


class HandoverError(BridgeError):
    """Base for handover failures.

    Every HandoverError is resolved by the requester falling back to a direct
    start() after the settle delay. None of them fail a handover on their own.
    """


class HandoverRejectedError(HandoverError):
    """The bound instance answered but did not report success."""

    def __init__(self, port: int, detail: str) -> None:
        self.port = port
        self.detail = detail
        super().__init__(f"Handover on port {port} rejected: {detail}")


class HandoverUnreachableError(HandoverError):
    """Nobody answered the handover request (or the network failed).

    Attributes:
        port: Port the request was sent to.
        transient: True for timeouts and other failures that may succeed on
            retry; False when the connection was refused outright.
    """

    def __init__(self, port: int, detail: str, *, transient: bool) -> None:
        self.port = port
        self.detail = detail
        self.transient = transient
        super().__init__(f"Handover on port {port} unreachable: {detail}")


# =============================================================================
# Escalation Signals
# =============================================================================


class ShutdownTimeoutError(BridgeError):
    """Graceful shutdown did not finish within its outer timeout.

    Never raised to a caller: the lifecycle manager logs it and escalates to
    forced shutdown.
    """

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Graceful shutdown did not complete within {timeout_seconds:.0f}s")
