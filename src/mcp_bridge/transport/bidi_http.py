"""Bidirectional JSON-RPC over loopback HTTP.

The MCP client POSTs each JSON-RPC message to the bridge. Requests carrying
an id are held open until the registered message handler produces the
matching response through send(); notifications and responses from the
client are acknowledged immediately.

Only one bridge can own the well-known port at a time. A newly started
instance takes the port over from a running one through the handover
protocol (see request_handover()).

Status model:
    stopped -> starting -> running <-> tool_list_updated
    Any status -> stopped on close() or bind failure.
"""

from __future__ import annotations

__all__ = [
    "BidiHttpTransport",
    "MessageHandler",
]

import asyncio
import contextlib
import inspect
import logging
import socket
from typing import Any, Awaitable, Callable

import uvicorn
from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse

from mcp_bridge.config import HandoverConfig
from mcp_bridge.constants import (
    BRIDGE_HOST,
    CLOSE_TIMEOUT_SECONDS,
    DEFAULT_BRIDGE_PORT,
    HTTP_LISTEN_BACKLOG,
    SERVER_STARTUP_POLL_INTERVAL_SECONDS,
    SERVER_STARTUP_TIMEOUT_SECONDS,
    TOOLS_LIST_METHOD,
    TOOLS_UPDATED_MESSAGE,
)
from mcp_bridge.events import EventChannel
from mcp_bridge.exceptions import (
    HandoverError,
    HandoverRejectedError,
    NoMessageHandlerError,
    PortBindError,
    TransportClosedError,
)
from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.telemetry.system_logger import log_event
from mcp_bridge.transport.app import create_bridge_app, error_response
from mcp_bridge.transport.handover import send_handover_request
from mcp_bridge.transport.models import SuccessResponse
from mcp_bridge.transport.pending import JsonRpcMessage, PendingResponseTable
from mcp_bridge.transport.status import ServerStatus

# Plain callable, or one returning an awaitable that is scheduled as a task
MessageHandler = Callable[[JsonRpcMessage], Awaitable[None] | None]


class BidiHttpTransport:
    """JSON-RPC transport served over HTTP on 127.0.0.1.

    Example:
        transport = BidiHttpTransport(60100)
        transport.set_message_handler(handle)
        await transport.request_handover()
        ...
        await transport.send({"jsonrpc": "2.0", "id": 1, "result": {}})
        await transport.close()
    """

    def __init__(
        self,
        port: int = DEFAULT_BRIDGE_PORT,
        *,
        handover: HandoverConfig | None = None,
        host: str = BRIDGE_HOST,
    ) -> None:
        """Initialize the transport; nothing is bound until start().

        Args:
            port: Port to bind. 0 binds an ephemeral port (tests).
            handover: Handover retry and timing settings.
            host: Loopback address to bind.
        """
        self._host = host
        self._port = port
        self._bound_port: int | None = None
        self._handover_config = handover or HandoverConfig()

        self._status = ServerStatus.STOPPED
        self._pending = PendingResponseTable()
        self._message_handler: MessageHandler | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()

        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._release_task: asyncio.Task[None] | None = None
        self._closing: asyncio.Future[None] | None = None

        self.status_changed: EventChannel[ServerStatus] = EventChannel("status_changed")
        self.notifications: EventChannel[str] = EventChannel("notifications")
        self.activity: EventChannel[str] = EventChannel("activity")

        self._app = create_bridge_app(self)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> ServerStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status in (ServerStatus.RUNNING, ServerStatus.TOOL_LIST_UPDATED)

    @property
    def port(self) -> int:
        """Bound port while listening, otherwise the configured port."""
        return self._bound_port if self._bound_port is not None else self._port

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def app(self) -> FastAPI:
        """The FastAPI app (exposed for in-process testing)."""
        return self._app

    def set_message_handler(self, handler: MessageHandler | None) -> None:
        """Register the callback receiving every inbound JSON-RPC message."""
        self._message_handler = handler

    def _set_status(self, status: ServerStatus) -> None:
        if status == self._status:
            return
        previous = self._status
        self._status = status
        log_event(
            logging.DEBUG,
            SystemEvent(
                event="status_changed",
                message=f"Transport status {previous.value} -> {status.value}",
                component="transport",
                port=self.port,
                status=status.value,
            ),
        )
        self.status_changed.emit(status)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind the port and serve until close().

        Raises:
            PortBindError: If the port cannot be bound. Status is stopped.
        """
        if self._server is not None:
            log_event(
                logging.DEBUG,
                SystemEvent(
                    event="start_ignored",
                    message="Transport already started",
                    component="transport",
                    port=self.port,
                ),
            )
            return

        self._set_status(ServerStatus.STARTING)

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._host, self._port))
            sock.listen(HTTP_LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            self._set_status(ServerStatus.STOPPED)
            error = PortBindError(self._port, e)
            log_event(
                logging.ERROR,
                SystemEvent(
                    event="port_bind_failed",
                    message=str(error),
                    component="transport",
                    port=self._port,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
            raise error from e
        sock.setblocking(False)

        # Suppress uvicorn's logging (we use our own)
        for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            logging.getLogger(logger_name).setLevel(logging.CRITICAL)

        config = uvicorn.Config(
            self._app,
            log_config=None,
            access_log=False,
            ws="none",
            lifespan="off",
            timeout_graceful_shutdown=int(CLOSE_TIMEOUT_SECONDS),
        )
        server = uvicorn.Server(config)
        self._socket = sock
        self._bound_port = sock.getsockname()[1]
        self._server = server
        self._serve_task = asyncio.create_task(server._serve(sockets=[sock]))

        await self._wait_until_serving(server, self._serve_task)

        self._set_status(ServerStatus.RUNNING)
        log_event(
            logging.INFO,
            SystemEvent(
                event="transport_started",
                message=f"Bridge listening on http://{self._host}:{self.port}",
                component="transport",
                port=self.port,
            ),
        )

    async def _wait_until_serving(self, server: uvicorn.Server, serve_task: asyncio.Task[None]) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + SERVER_STARTUP_TIMEOUT_SECONDS
        while not server.started:
            if serve_task.done() or loop.time() > deadline:
                # The socket is already bound, so this only happens if uvicorn itself failed
                self.force_close()
                error = OSError(f"HTTP server did not start within {SERVER_STARTUP_TIMEOUT_SECONDS}s")
                if serve_task.done() and not serve_task.cancelled() and serve_task.exception() is not None:
                    exc = serve_task.exception()
                    error = OSError(f"HTTP server failed to start: {exc}")
                raise PortBindError(self._port, error)
            await asyncio.sleep(SERVER_STARTUP_POLL_INTERVAL_SECONDS)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, message: JsonRpcMessage) -> None:
        """Deliver an outbound message.

        A response (id plus result or error) completes the held HTTP request
        with the same id. Outbound notifications and requests have no channel
        to the client and are ignored.
        """
        if "id" not in message or ("result" not in message and "error" not in message):
            log_event(
                logging.DEBUG,
                SystemEvent(
                    event="outbound_message_ignored",
                    message="Outbound message is not a response, ignoring",
                    component="transport",
                ),
            )
            return

        request_id = message["id"]
        if not self._pending.resolve(request_id, message):
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="no_pending_response",
                    message=f"No pending request for response id {request_id!r}",
                    component="transport",
                    request_id=request_id if isinstance(request_id, (str, int)) else None,
                ),
            )

    # ------------------------------------------------------------------
    # Inbound (called by the FastAPI routes)
    # ------------------------------------------------------------------

    async def handle_inbound(self, message: JsonRpcMessage) -> Response:
        """Dispatch an inbound message and build the HTTP response.

        Raises:
            NoMessageHandlerError: If no handler is registered.
            Exception: Whatever the handler raised.
        """
        if self._status == ServerStatus.TOOL_LIST_UPDATED and message.get("method") == TOOLS_LIST_METHOD:
            self._set_status(ServerStatus.RUNNING)

        handler = self._message_handler
        if handler is None:
            raise NoMessageHandlerError()

        request_id = message.get("id")
        if request_id is None:
            self._dispatch(handler, message, None)
            return JSONResponse(SuccessResponse().model_dump())

        future = self._pending.register(request_id)
        try:
            self._dispatch(handler, message, request_id)
        except Exception:
            self._pending.discard(request_id, future)
            raise

        try:
            response = await future
        except TransportClosedError as e:
            return error_response(503, "Service Unavailable", str(e))
        return JSONResponse(response)

    def _dispatch(self, handler: MessageHandler, message: JsonRpcMessage, request_id: Any) -> None:
        result = handler(message)
        if not inspect.isawaitable(result):
            return
        task: asyncio.Task[None] = asyncio.ensure_future(result)
        self._handler_tasks.add(task)
        task.add_done_callback(lambda t: self._on_handler_done(t, request_id))

    def _on_handler_done(self, task: asyncio.Task[None], request_id: Any) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        log_event(
            logging.ERROR,
            SystemEvent(
                event="message_handler_failed",
                message=f"Message handler raised {type(exc).__name__}: {exc}",
                component="transport",
                request_id=request_id if isinstance(request_id, (str, int)) else None,
                error_type=type(exc).__name__,
                error_message=str(exc),
            ),
        )
        if request_id is not None:
            # Held request surfaces the failure as a 500
            self._pending.fail(request_id, exc)

    def mark_tool_list_updated(self) -> None:
        """Record that the server's tools changed and tell the human."""
        self._set_status(ServerStatus.TOOL_LIST_UPDATED)
        log_event(
            logging.INFO,
            SystemEvent(
                event="tools_updated",
                message="Tool list updated",
                component="transport",
                port=self.port,
            ),
        )
        self.notifications.emit(TOOLS_UPDATED_MESSAGE)

    def release_for_handover(self) -> None:
        """Release the port after a handover acknowledgement was sent.

        Runs as a background task of the acknowledging request, so the close
        is scheduled rather than awaited: uvicorn waits for that very request
        to finish before completing its shutdown.
        """
        self._set_status(ServerStatus.STOPPED)
        self._release_task = asyncio.create_task(self.close())

    # ------------------------------------------------------------------
    # Handover
    # ------------------------------------------------------------------

    async def request_handover(self, config: HandoverConfig | None = None) -> bool:
        """Take the port over from a running instance, or start directly.

        Any handover failure falls back to a direct start() after the same
        settle delay.

        Args:
            config: Overrides the handover settings given at construction.

        Returns:
            True once the final start() succeeded.

        Raises:
            PortBindError: If the final start() fails.
        """
        settings = config or self._handover_config
        self._set_status(ServerStatus.STARTING)

        try:
            await send_handover_request(self._port, settings, host=self._host)
            log_event(
                logging.INFO,
                SystemEvent(
                    event="handover_accepted",
                    message=f"Previous instance on port {self._port} released the port",
                    component="transport",
                    port=self._port,
                ),
            )
        except HandoverError as e:
            event = "handover_rejected" if isinstance(e, HandoverRejectedError) else "handover_unreachable"
            log_event(
                logging.INFO,
                SystemEvent(
                    event=event,
                    message=f"{e}; starting directly",
                    component="transport",
                    port=self._port,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )

        await asyncio.sleep(settings.settle_delay_seconds)
        await self.start()
        return True

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def _fail_pending(self) -> None:
        dangling = self._pending.fail_all(TransportClosedError)
        if dangling:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="dangling_pending_responses",
                    message=f"Closing with {len(dangling)} unanswered request(s)",
                    component="transport",
                    port=self.port,
                    details={"request_ids": dangling},
                ),
            )

    async def close(self) -> None:
        """Stop serving and release the port. Idempotent; never raises.

        Status becomes stopped before the listener closes. Requests still held
        open are answered with 503. If uvicorn does not finish within
        CLOSE_TIMEOUT_SECONDS it is force-exited and the close still completes.
        Concurrent callers all wait for the same close.
        """
        self._set_status(ServerStatus.STOPPED)

        if self._closing is not None:
            await asyncio.shield(self._closing)
            return

        server, serve_task, sock = self._server, self._serve_task, self._socket
        self._server = None
        self._serve_task = None
        self._socket = None
        self._bound_port = None

        if server is None or serve_task is None:
            log_event(
                logging.DEBUG,
                SystemEvent(
                    event="close_ignored",
                    message="No server to close",
                    component="transport",
                    port=self._port,
                ),
            )
            return

        self._fail_pending()
        closing = asyncio.ensure_future(self._stop_server(server, serve_task, sock))
        self._closing = closing
        try:
            await asyncio.shield(closing)
        finally:
            if self._closing is closing:
                self._closing = None

    async def _stop_server(
        self,
        server: uvicorn.Server,
        serve_task: asyncio.Task[None],
        sock: socket.socket | None,
    ) -> None:
        server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(serve_task), timeout=CLOSE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="close_timeout",
                    message=f"HTTP server did not stop within {CLOSE_TIMEOUT_SECONDS}s, forcing",
                    component="transport",
                    port=self._port,
                ),
            )
            server.force_exit = True
            serve_task.cancel()
        except Exception as e:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="close_error",
                    message=f"HTTP server stopped with error: {type(e).__name__}: {e}",
                    component="transport",
                    port=self._port,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
        finally:
            if sock is not None:
                sock.close()

        log_event(
            logging.INFO,
            SystemEvent(
                event="transport_closed",
                message=f"Bridge on port {self._port} closed",
                component="transport",
                port=self._port,
            ),
        )

    def force_close(self) -> None:
        """Synchronous best-effort teardown used by forced shutdown."""
        self._set_status(ServerStatus.STOPPED)
        server, serve_task, sock = self._server, self._serve_task, self._socket
        self._server = None
        self._serve_task = None
        self._socket = None
        self._bound_port = None

        self._fail_pending()
        if server is not None:
            server.should_exit = True
            server.force_exit = True
        if serve_task is not None and not serve_task.done():
            serve_task.cancel()
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.close()
