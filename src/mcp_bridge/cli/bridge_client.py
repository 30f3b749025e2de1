"""HTTP client helper for CLI commands that talk to a running bridge.

The bridge listens on 127.0.0.1 only, so no authentication is involved.
"""

from __future__ import annotations

__all__ = [
    "BridgeAPIError",
    "BridgeNotRunningError",
    "bridge_request",
]

from typing import Any

import click
import httpx

from mcp_bridge.constants import BRIDGE_HOST, CLI_HTTP_TIMEOUT_SECONDS


class BridgeNotRunningError(click.ClickException):
    """Raised when nothing listens on the bridge port."""

    def __init__(self, port: int) -> None:
        super().__init__(f"No bridge is running on port {port}.\nStart one with: mcp-bridge start --port {port}")
        self.port = port


class BridgeAPIError(click.ClickException):
    """Raised when the bridge answers with an error or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        if status_code:
            super().__init__(f"Bridge error ({status_code}): {message}")
        else:
            super().__init__(f"Bridge error: {message}")
        self.status_code = status_code


def bridge_request(
    method: str,
    endpoint: str,
    *,
    port: int,
    json_data: dict[str, Any] | None = None,
    timeout: float = CLI_HTTP_TIMEOUT_SECONDS,
) -> dict[str, Any]:
    """Make a request to the bridge on 127.0.0.1:port.

    Args:
        method: HTTP method.
        endpoint: Path, e.g. "/ping".
        port: Bridge port.
        json_data: Optional JSON body.
        timeout: Request timeout in seconds.

    Returns:
        Parsed JSON object.

    Raises:
        BridgeNotRunningError: If the connection is refused.
        BridgeAPIError: If the request fails or returns an error status.
    """
    try:
        with httpx.Client(
            base_url=f"http://{BRIDGE_HOST}:{port}",
            timeout=timeout,
            trust_env=False,
        ) as client:
            response = client.request(method, endpoint, json=json_data)
            response.raise_for_status()
            result = response.json()
    except httpx.ConnectError as e:
        raise BridgeNotRunningError(port) from e
    except httpx.HTTPStatusError as e:
        try:
            body = e.response.json()
            detail = body.get("detail") or body.get("error") or str(e)
        except (ValueError, AttributeError):
            detail = str(e)
        raise BridgeAPIError(detail, e.response.status_code) from e
    except httpx.HTTPError as e:
        raise BridgeAPIError(str(e)) from e
    except ValueError as e:
        raise BridgeAPIError(f"Invalid JSON response: {e}") from e

    if not isinstance(result, dict):
        return {"value": result}
    return result
