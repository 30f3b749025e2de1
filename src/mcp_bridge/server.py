"""Bridge runner: wires transport, message handler and lifecycle together.

Startup sequence:
1. Configure logging from config
2. Build the transport and register the message handler
3. Take the port over from a running instance (or bind directly)
4. Register the transport with the lifecycle manager
5. Wait until the lifecycle manager reports shutdown

The built-in message handler answers the requests a client needs to verify
connectivity (initialize, ping, tools/list). Real deployments register their
own handler through handler_factory, which receives a BridgeContext carrying
the transport, the auto-approval policy engine and the confirmation gateway
built from the same config.
"""

from __future__ import annotations

__all__ = [
    "BridgeContext",
    "BuiltinMessageHandler",
    "HandlerFactory",
    "run_bridge",
]

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from mcp_bridge import __version__
from mcp_bridge.approval.confirmation import (
    ClickPrompter,
    ConfirmationGateway,
    PendingConfirmationStrategy,
    PromptConfirmationStrategy,
)
from mcp_bridge.approval.policy import AutoApprovalPolicyEngine
from mcp_bridge.config import BridgeConfig
from mcp_bridge.constants import APP_NAME, DEFAULT_LOG_DIR, TOOLS_LIST_METHOD
from mcp_bridge.lifecycle.manager import LifecycleManager
from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.telemetry.system_logger import (
    configure_system_logger_file,
    log_event,
    set_console_level,
)
from mcp_bridge.transport.bidi_http import BidiHttpTransport, MessageHandler
from mcp_bridge.transport.pending import JsonRpcMessage
from mcp_bridge.transport.status import ServerStatus

# JSON-RPC error codes
METHOD_NOT_FOUND = -32601

DEFAULT_PROTOCOL_VERSION = "2025-06-18"


@dataclass(frozen=True)
class BridgeContext:
    """What a message handler needs from the running bridge.

    Attributes:
        transport: Transport the handler answers through.
        config: Settings the bridge was started with.
        policy_engine: Auto-approval decisions for tool operations.
        confirmation: Auto-approves or asks a human for tool operations.
    """

    transport: BidiHttpTransport
    config: BridgeConfig
    policy_engine: AutoApprovalPolicyEngine
    confirmation: ConfirmationGateway


HandlerFactory = Callable[[BridgeContext], MessageHandler]


class BuiltinMessageHandler:
    """Minimal MCP server answering connectivity requests.

    - initialize: server info with tool list change notifications enabled
    - ping: empty result
    - tools/list: no tools
    - any other request: JSON-RPC -32601 Method not found
    Notifications and client responses are ignored.
    """

    def __init__(self, transport: BidiHttpTransport) -> None:
        self._transport = transport

    async def __call__(self, message: JsonRpcMessage) -> None:
        method = message.get("method")
        request_id = message.get("id")
        if method is None or request_id is None:
            return

        result = self._result_for(method, message.get("params") or {})
        if result is None:
            await self._transport.send(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"},
                }
            )
            return
        await self._transport.send({"jsonrpc": "2.0", "id": request_id, "result": result})

    @staticmethod
    def _result_for(method: str, params: dict[str, Any]) -> dict[str, Any] | None:
        if method == "initialize":
            return {
                "protocolVersion": params.get("protocolVersion", DEFAULT_PROTOCOL_VERSION),
                "capabilities": {"tools": {"listChanged": True}},
                "serverInfo": {"name": APP_NAME, "version": __version__},
            }
        if method == "ping":
            return {}
        if method == TOOLS_LIST_METHOD:
            return {"tools": []}
        return None


def _configure_logging(config: BridgeConfig) -> Path:
    set_console_level(config.logging.log_level)
    log_dir = Path(config.logging.log_dir).expanduser() if config.logging.log_dir else Path(DEFAULT_LOG_DIR)
    return configure_system_logger_file(log_dir)


def _default_handler(context: BridgeContext) -> MessageHandler:
    return BuiltinMessageHandler(context.transport)


def _build_confirmation(config: BridgeConfig, engine: AutoApprovalPolicyEngine) -> ConfirmationGateway:
    strategies = {
        "quickPick": PromptConfirmationStrategy(ClickPrompter(), status_description=engine.get_status_description),
        "statusBar": PendingConfirmationStrategy(
            timeout_provider=lambda: config.auto_approval.limits.request_timeout_seconds
        ),
    }
    return ConfirmationGateway(engine, strategies, lambda: config.confirmation_ui)


async def run_bridge(
    config: BridgeConfig,
    *,
    handler_factory: HandlerFactory | None = None,
    handover: bool = True,
    lifecycle: LifecycleManager | None = None,
) -> BidiHttpTransport:
    """Run a bridge until it shuts down.

    Args:
        config: Bridge settings.
        handler_factory: Builds the message handler from the bridge context.
            Defaults to BuiltinMessageHandler.
        handover: Take the port over from a running instance first.
        lifecycle: Lifecycle manager (tests inject one without process hooks).

    Returns:
        The transport, closed.

    Raises:
        PortBindError: If the port could not be bound.
    """
    log_path = _configure_logging(config)

    engine = AutoApprovalPolicyEngine(lambda: config.auto_approval, workspace_roots=config.workspace_roots)
    confirmation = _build_confirmation(config, engine)
    confirmation.notifications.subscribe(
        lambda text: log_event(
            logging.INFO,
            SystemEvent(event="notification", message=text, component="confirmation", port=config.port),
        )
    )

    transport = BidiHttpTransport(config.port, handover=config.handover)
    context = BridgeContext(transport=transport, config=config, policy_engine=engine, confirmation=confirmation)
    transport.set_message_handler((handler_factory or _default_handler)(context))
    transport.notifications.subscribe(
        lambda text: log_event(
            logging.INFO,
            SystemEvent(event="notification", message=text, component="transport", port=transport.port),
        )
    )

    log_event(
        logging.INFO,
        SystemEvent(
            event="bridge_starting",
            message=f"Starting {APP_NAME} {__version__} on port {config.port} (auto-approval: {engine.get_status_description()})",
            component="server",
            port=config.port,
            details={"log_file": str(log_path), "handover": handover},
        ),
    )

    if handover:
        await transport.request_handover()
    else:
        await transport.start()

    manager = lifecycle or LifecycleManager()
    manager.register_transport(transport)

    def on_status(status: ServerStatus) -> None:
        # Port taken over by a newer instance: nothing left to serve
        if status == ServerStatus.STOPPED and not manager.is_shutting_down:
            manager.request_shutdown("port_released")

    transport.status_changed.subscribe(on_status)

    await manager.wait_for_shutdown()
    return transport
