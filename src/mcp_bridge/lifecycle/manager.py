"""Process lifecycle of a bridge: idle timeout, graceful and forced shutdown.

The manager owns one transport at a time. It:
- tracks client activity (every inbound HTTP request counts)
- runs a heartbeat that shuts down after CLIENT_TIMEOUT_SECONDS of silence
- routes SIGINT, SIGTERM, uncaught exceptions and unhandled async errors
  into one graceful shutdown routine
- escalates to a forced shutdown when the graceful one fails or hangs

Shutdown sequence (graceful):
1. Set _shutdown_in_progress (later triggers are no-ops)
2. Stop the heartbeat
3. Close the transport, bounded by SHUTDOWN_TIMEOUT_SECONDS
4. Set shutdown_complete

Shutdown sequence (forced, never raises):
1. Stop the heartbeat
2. transport.force_close() (best effort)
3. Flush logs (best effort)
4. Set shutdown_complete
5. Call exit_fn(0) after FORCE_EXIT_DELAY_SECONDS
"""

from __future__ import annotations

__all__ = [
    "LifecycleManager",
    "LifecycleStatus",
]

import asyncio
import logging
import os
import signal
import sys
import time
from dataclasses import dataclass
from types import FrameType, TracebackType
from typing import Any, Callable

from mcp_bridge.constants import (
    CLIENT_TIMEOUT_SECONDS,
    FORCE_EXIT_DELAY_SECONDS,
    HEARTBEAT_INTERVAL_SECONDS,
    SHUTDOWN_TIMEOUT_SECONDS,
)
from mcp_bridge.events import Unsubscribe
from mcp_bridge.exceptions import ShutdownTimeoutError
from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.telemetry.system_logger import flush_system_logger, log_event
from mcp_bridge.transport.bidi_http import BidiHttpTransport


@dataclass(frozen=True)
class LifecycleStatus:
    """Snapshot of client activity.

    Attributes:
        is_active: Whether a transport is registered and its heartbeat is
            running (false before registration and once shutdown starts).
        last_activity: Epoch seconds of the last client activity.
        time_since_activity: Seconds since the last client activity.
    """

    is_active: bool
    last_activity: float
    time_since_activity: float


# Process hooks are installed once per process and route to the most
# recently registered manager.
_hooks_installed: bool = False
_active_manager: LifecycleManager | None = None


class LifecycleManager:
    """Heartbeat, idle timeout and shutdown for one transport."""

    def __init__(
        self,
        *,
        exit_fn: Callable[[int], Any] = os._exit,
        install_process_hooks: bool = True,
        clock: Callable[[], float] = time.time,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        client_timeout: float = CLIENT_TIMEOUT_SECONDS,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT_SECONDS,
        force_exit_delay: float = FORCE_EXIT_DELAY_SECONDS,
    ) -> None:
        """Initialize the manager.

        Args:
            exit_fn: Terminates the process after a forced shutdown.
            install_process_hooks: Install signal/exception hooks on
                register_transport(). Tests pass False.
            clock: Wall clock in epoch seconds.
            heartbeat_interval: Seconds between idle checks.
            client_timeout: Idle seconds before shutdown.
            shutdown_timeout: Bound on the graceful shutdown.
            force_exit_delay: Delay before exit_fn runs, so logs can flush.
        """
        self._exit_fn = exit_fn
        self._install_hooks = install_process_hooks
        self._clock = clock
        self._heartbeat_interval = heartbeat_interval
        self._client_timeout = client_timeout
        self._shutdown_timeout = shutdown_timeout
        self._force_exit_delay = force_exit_delay

        self._transport: BidiHttpTransport | None = None
        self._unsubscribe_activity: Unsubscribe | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._shutdown_task: asyncio.Task[None] | None = None
        self._exit_task: asyncio.Task[None] | None = None

        self._last_activity = clock()
        self._shutdown_in_progress = False
        self._forced = False
        self._shutdown_reason: str | None = None
        self.shutdown_complete = asyncio.Event()

    @property
    def transport(self) -> BidiHttpTransport | None:
        return self._transport

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_in_progress

    @property
    def shutdown_reason(self) -> str | None:
        return self._shutdown_reason

    # ------------------------------------------------------------------
    # Registration and activity
    # ------------------------------------------------------------------

    def register_transport(self, transport: BidiHttpTransport) -> None:
        """Take ownership of a transport and start the heartbeat.

        Must be called from within the running event loop. Replaces any
        previously registered transport (which is not closed).
        """
        if self._unsubscribe_activity is not None:
            self._unsubscribe_activity()
        self._transport = transport
        self._unsubscribe_activity = transport.activity.subscribe(lambda _path: self.update_client_activity())
        self._loop = asyncio.get_running_loop()
        self.update_client_activity()
        self._start_heartbeat()
        if self._install_hooks:
            _install_process_hooks(self, self._loop)

    def update_client_activity(self) -> None:
        self._last_activity = self._clock()

    def get_status(self) -> LifecycleStatus:
        """Snapshot from in-memory state only; safe to call mid-shutdown."""
        since = max(0.0, self._clock() - self._last_activity)
        heartbeat = self._heartbeat_task
        return LifecycleStatus(
            is_active=(
                self._transport is not None
                and heartbeat is not None
                and not heartbeat.done()
                and not self._shutdown_in_progress
            ),
            last_activity=self._last_activity,
            time_since_activity=since,
        )

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    def _stop_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        # Never cancel the task we are running in (idle shutdown runs inside it)
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            if await self.heartbeat_tick():
                return

    async def heartbeat_tick(self) -> bool:
        """Check for client inactivity; shut down if idle for too long.

        Returns:
            True if the idle timeout triggered a shutdown.
        """
        status = self.get_status()
        if status.time_since_activity <= self._client_timeout:
            return False
        log_event(
            logging.INFO,
            SystemEvent(
                event="idle_shutdown_triggered",
                message=f"No client activity for {status.time_since_activity:.0f}s, shutting down",
                component="lifecycle",
                reason="client_timeout",
                details={"seconds_idle": status.time_since_activity},
            ),
        )
        await self._graceful_shutdown("client_timeout")
        return True

    # ------------------------------------------------------------------
    # Graceful shutdown
    # ------------------------------------------------------------------

    async def shutdown(self, reason: str = "manual") -> None:
        """Gracefully shut down; a no-op while a shutdown is in progress."""
        await self._graceful_shutdown(reason)

    async def wait_for_shutdown(self) -> None:
        await self.shutdown_complete.wait()

    def request_shutdown(self, reason: str) -> None:
        """Schedule a graceful shutdown from synchronous code in the loop thread."""
        if self._shutdown_in_progress:
            return
        self._shutdown_task = asyncio.get_running_loop().create_task(self._graceful_shutdown(reason))

    async def _graceful_shutdown(self, reason: str) -> None:
        if self._shutdown_in_progress:
            log_event(
                logging.DEBUG,
                SystemEvent(
                    event="shutdown_already_in_progress",
                    message=f"Shutdown ({reason}) ignored, already shutting down",
                    component="lifecycle",
                    reason=reason,
                ),
            )
            return

        self._shutdown_in_progress = True
        self._shutdown_reason = reason
        log_event(
            logging.INFO,
            SystemEvent(
                event="shutdown_started",
                message=f"Shutting down ({reason})",
                component="lifecycle",
                reason=reason,
            ),
        )

        self._stop_heartbeat()
        try:
            await asyncio.wait_for(self._close_resources(), timeout=self._shutdown_timeout)
        except asyncio.TimeoutError:
            error = ShutdownTimeoutError(self._shutdown_timeout)
            log_event(
                logging.ERROR,
                SystemEvent(
                    event="shutdown_timeout",
                    message=str(error),
                    component="lifecycle",
                    reason=reason,
                    error_type=type(error).__name__,
                    error_message=str(error),
                ),
            )
            self.force_shutdown(reason)
            return
        except Exception as e:
            log_event(
                logging.ERROR,
                SystemEvent(
                    event="shutdown_failed",
                    message=f"Graceful shutdown failed: {type(e).__name__}: {e}",
                    component="lifecycle",
                    reason=reason,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
            self.force_shutdown(reason)
            return

        log_event(
            logging.INFO,
            SystemEvent(
                event="shutdown_complete",
                message="Shutdown complete",
                component="lifecycle",
                reason=reason,
            ),
        )
        self.shutdown_complete.set()

    async def _close_resources(self) -> None:
        if self._unsubscribe_activity is not None:
            self._unsubscribe_activity()
            self._unsubscribe_activity = None
        if self._transport is not None:
            await self._transport.close()

    # ------------------------------------------------------------------
    # Forced shutdown
    # ------------------------------------------------------------------

    def force_shutdown(self, reason: str) -> None:
        """Tear down immediately and terminate the process. Never raises."""
        if self._forced:
            return
        self._forced = True
        self._shutdown_in_progress = True
        if self._shutdown_reason is None:
            self._shutdown_reason = reason

        try:
            log_event(
                logging.CRITICAL,
                SystemEvent(
                    event="forced_shutdown",
                    message=f"Forcing shutdown ({reason})",
                    component="lifecycle",
                    reason=reason,
                ),
            )
        except Exception:
            pass  # Best effort

        try:
            self._stop_heartbeat()
        except Exception:
            pass  # Best effort

        if self._transport is not None:
            try:
                self._transport.force_close()
            except Exception:
                pass  # Best effort - process exits regardless

        try:
            flush_system_logger()
        except Exception:
            pass  # Best effort

        self.shutdown_complete.set()
        self._schedule_exit()

    def _schedule_exit(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (e.g. uncaught exception after the loop ended)
            time.sleep(self._force_exit_delay)
            self._exit_fn(0)
            return
        self._exit_task = loop.create_task(self._delayed_exit())

    async def _delayed_exit(self) -> None:
        """Exit after a short delay so in-flight log writes can finish."""
        await asyncio.sleep(self._force_exit_delay)
        self._exit_fn(0)


# =============================================================================
# Process hooks
# =============================================================================


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _install_process_hooks(manager: LifecycleManager, loop: asyncio.AbstractEventLoop) -> None:
    """Point the process hooks at manager, installing them on first use."""
    global _hooks_installed, _active_manager

    _active_manager = manager
    # The loop handler is per loop; re-setting it on the same loop is harmless
    loop.set_exception_handler(_on_loop_exception)
    if _hooks_installed:
        return
    _hooks_installed = True

    try:
        signal.signal(signal.SIGTERM, _on_signal)
        signal.signal(signal.SIGINT, _on_signal)
    except ValueError as e:
        # signal.signal only works in the main thread
        log_event(
            logging.WARNING,
            SystemEvent(
                event="signal_hooks_unavailable",
                message=f"Signal handlers not installed: {e}",
                component="lifecycle",
            ),
        )
    sys.excepthook = _on_uncaught_exception


def _on_signal(signum: int, frame: FrameType | None) -> None:
    """Handle shutdown signals (SIGTERM, SIGINT)."""
    manager = _active_manager
    if manager is None or manager._loop is None:
        return
    name = signal.Signals(signum).name
    log_event(
        logging.INFO,
        SystemEvent(
            event="shutdown_signal_received",
            message=f"Received {name}, initiating shutdown",
            component="lifecycle",
            details={"signal": signum},
        ),
    )
    manager._loop.call_soon_threadsafe(manager.request_shutdown, f"signal_{name.lower()}")


def _on_uncaught_exception(
    exc_type: type[BaseException],
    exc: BaseException,
    tb: TracebackType | None,
) -> None:
    sys.__excepthook__(exc_type, exc, tb)
    log_event(
        logging.CRITICAL,
        SystemEvent(
            event="uncaught_exception",
            message=f"Uncaught exception: {exc_type.__name__}: {exc}",
            component="lifecycle",
            error_type=exc_type.__name__,
            error_message=str(exc),
        ),
    )
    manager = _active_manager
    if manager is not None:
        manager.force_shutdown("uncaught_exception")


def _on_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    log_event(
        logging.ERROR,
        SystemEvent(
            event="unhandled_async_error",
            message=context.get("message") or "Unhandled error in event loop",
            component="lifecycle",
            error_type=type(exc).__name__ if exc is not None else None,
            error_message=str(exc) if exc is not None else None,
        ),
    )
    manager = _active_manager
    if manager is not None and manager._loop is loop:
        manager.request_shutdown("unhandled_error")
