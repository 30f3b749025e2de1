"""Loopback HTTP transport for JSON-RPC, with socket handover.

Components:
- BidiHttpTransport: binds the port, holds requests until send() answers them
- PendingResponseTable: id -> future correlation
- ServerStatus: stopped / starting / running / tool_list_updated
- send_handover_request: client side of the handover protocol
"""

from mcp_bridge.transport.bidi_http import BidiHttpTransport, MessageHandler
from mcp_bridge.transport.handover import HANDOVER_PATH, send_handover_request
from mcp_bridge.transport.pending import JsonRpcMessage, PendingResponseTable, RequestId
from mcp_bridge.transport.status import ServerStatus

__all__ = [
    "BidiHttpTransport",
    "HANDOVER_PATH",
    "JsonRpcMessage",
    "MessageHandler",
    "PendingResponseTable",
    "RequestId",
    "ServerStatus",
    "send_handover_request",
]
