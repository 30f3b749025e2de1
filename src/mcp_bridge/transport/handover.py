"""Client side of the socket-handover protocol.

A starting instance asks the instance currently bound to the well-known port
to release it by POSTing to /request-handover. Any failure is reported as a
HandoverError subclass; the transport treats every one of them as "the port
is free" and falls back to a direct bind.

Transient failures (timeouts, resets) may be retried a configurable number of
times first. A refused connection means nobody is listening and is never
retried.
"""

from __future__ import annotations

__all__ = [
    "HANDOVER_PATH",
    "send_handover_request",
]

import asyncio
import logging

import httpx

from mcp_bridge.config import HandoverConfig
from mcp_bridge.constants import BRIDGE_HOST
from mcp_bridge.exceptions import HandoverRejectedError, HandoverUnreachableError
from mcp_bridge.telemetry.models import SystemEvent
from mcp_bridge.telemetry.system_logger import log_event

HANDOVER_PATH = "/request-handover"


async def send_handover_request(
    port: int,
    config: HandoverConfig,
    host: str = BRIDGE_HOST,
) -> None:
    """Ask the instance bound to host:port to release the port.

    Args:
        port: Port of the currently bound instance.
        config: Retry and timeout settings.
        host: Host the instance listens on.

    Raises:
        HandoverRejectedError: The instance answered without success.
        HandoverUnreachableError: Nobody answered (after any retries).
    """
    url = f"http://{host}:{port}{HANDOVER_PATH}"
    attempt = 0
    while True:
        try:
            await _post_handover(url, port, config.request_timeout_seconds)
            return
        except HandoverUnreachableError as e:
            if not e.transient or attempt >= config.retries:
                raise
            attempt += 1
            log_event(
                logging.INFO,
                SystemEvent(
                    event="handover_retry",
                    message=f"Handover request failed transiently ({e.detail}), retry {attempt}/{config.retries}",
                    component="transport",
                    port=port,
                ),
            )
            await asyncio.sleep(config.retry_delay_seconds)


async def _post_handover(url: str, port: int, timeout: float) -> None:
    # trust_env=False: never route loopback traffic through an HTTP proxy from the environment
    try:
        async with httpx.AsyncClient(timeout=timeout, trust_env=False) as client:
            response = await client.post(url, json={})
    except httpx.ConnectError as e:
        raise HandoverUnreachableError(port, str(e) or "connection refused", transient=False) from e
    except httpx.HTTPError as e:
        raise HandoverUnreachableError(port, f"{type(e).__name__}: {e}", transient=True) from e

    try:
        data = response.json()
    except ValueError as e:
        raise HandoverRejectedError(port, f"HTTP {response.status_code} with non-JSON body") from e

    if response.status_code != 200 or not isinstance(data, dict) or data.get("success") is not True:
        raise HandoverRejectedError(port, f"HTTP {response.status_code}: {data!r}")
