"""FastAPI application serving the bridge endpoints.

Routes:
- GET  /ping: liveness probe
- POST /request-handover: release the port to a newer instance
- POST /notify-tools-updated: mark the tool list as changed
- POST /: inbound JSON-RPC message (request, response or notification)

The app holds no state of its own; every route delegates to the transport
that created it.
"""

from __future__ import annotations

__all__ = [
    "create_bridge_app",
    "error_response",
]

import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from mcp_bridge.exceptions import NoMessageHandlerError
from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.telemetry.system_logger import log_event
from mcp_bridge.transport.handover import HANDOVER_PATH
from mcp_bridge.transport.models import PingResponse, SuccessResponse
from mcp_bridge.utils.logging.iso_formatter import utc_timestamp

if TYPE_CHECKING:
    from mcp_bridge.transport.bidi_http import BidiHttpTransport


def error_response(
    status_code: int,
    message: str,
    detail: str | None = None,
) -> JSONResponse:
    """Create standardized error response.

    Args:
        status_code: HTTP status code.
        message: Error message for the "error" field.
        detail: Optional additional detail.

    Returns:
        JSONResponse with error structure.
    """
    content: dict[str, Any] = {"error": message}
    if detail:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


def create_bridge_app(transport: BidiHttpTransport) -> FastAPI:
    """Create the FastAPI app bound to a transport.

    Args:
        transport: Transport that owns the pending table and message handler.

    Returns:
        FastAPI application to be served by uvicorn.
    """
    app = FastAPI(
        title="MCP Bridge",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.transport = transport

    @app.middleware("http")
    async def track_activity(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Report client activity before routing, for every endpoint."""
        transport.activity.emit(request.url.path)
        return await call_next(request)

    @app.get("/ping", response_model=PingResponse)
    async def ping() -> PingResponse:
        return PingResponse(timestamp=utc_timestamp(), server_running=transport.is_running)

    @app.post(HANDOVER_PATH, response_model=SuccessResponse)
    async def request_handover(background_tasks: BackgroundTasks) -> SuccessResponse:
        """Acknowledge first; the port is released after the response is sent."""
        log_event(
            logging.INFO,
            SystemEvent(
                event="handover_requested",
                message="Handover requested by a new instance, releasing port",
                component="transport",
                port=transport.port,
            ),
        )
        background_tasks.add_task(transport.release_for_handover)
        return SuccessResponse()

    @app.post("/notify-tools-updated", response_model=SuccessResponse)
    async def notify_tools_updated() -> SuccessResponse:
        transport.mark_tool_list_updated()
        return SuccessResponse()

    @app.post("/", response_model=None)
    async def receive_message(request: Request) -> Response:
        try:
            message = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="invalid_message_body",
                    message=f"Inbound message is not valid JSON: {e}",
                    component="transport",
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
            return error_response(500, "Internal Server Error", "Invalid JSON body")

        if not isinstance(message, dict):
            return error_response(500, "Internal Server Error", "Message must be a JSON object")

        try:
            return await transport.handle_inbound(message)
        except NoMessageHandlerError as e:
            return error_response(500, str(e))
        except Exception as e:
            log_event(
                logging.ERROR,
                SystemEvent(
                    event="message_handling_failed",
                    message=f"Failed to handle inbound message: {type(e).__name__}: {e}",
                    component="transport",
                    request_id=_request_id_for_log(message),
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )
            return error_response(500, "Internal Server Error", str(e) or type(e).__name__)

    return app


def _request_id_for_log(message: dict[str, Any]) -> str | int | None:
    request_id = message.get("id")
    return request_id if isinstance(request_id, (str, int)) else None
