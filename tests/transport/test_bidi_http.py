"""Tests for BidiHttpTransport against real loopback sockets."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest

from mcp_bridge.config import HandoverConfig
from mcp_bridge.exceptions import PortBindError
from mcp_bridge.transport.bidi_http import BidiHttpTransport
from mcp_bridge.transport.status import ServerStatus


def url(transport: BidiHttpTransport, path: str = "/") -> str:
    return f"http://127.0.0.1:{transport.port}{path}"


class HeldHandler:
    """Records requests and leaves answering them to the test."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.arrived = asyncio.Event()

    def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)
        self.arrived.set()


@pytest.fixture
async def running() -> AsyncIterator[BidiHttpTransport]:
    transport = BidiHttpTransport(0)
    await transport.start()
    yield transport
    await transport.close()


class TestStartAndClose:
    async def test_status_sequence(self) -> None:
        transport = BidiHttpTransport(0)
        statuses: list[ServerStatus] = []
        transport.status_changed.subscribe(statuses.append)

        await transport.start()
        assert transport.port != 0
        assert transport.is_running
        await transport.close()

        assert statuses == [ServerStatus.STARTING, ServerStatus.RUNNING, ServerStatus.STOPPED]

    async def test_ping_over_http(self, running: BidiHttpTransport) -> None:
        async with httpx.AsyncClient(trust_env=False) as client:
            response = await client.get(url(running, "/ping"))

        assert response.status_code == 200
        assert response.json()["serverRunning"] is True

    async def test_close_is_idempotent(self) -> None:
        transport = BidiHttpTransport(0)
        await transport.start()

        await transport.close()
        await transport.close()

        assert transport.status == ServerStatus.STOPPED

    async def test_close_before_start(self) -> None:
        transport = BidiHttpTransport(0)

        await transport.close()

        assert transport.status == ServerStatus.STOPPED

    async def test_concurrent_close(self) -> None:
        transport = BidiHttpTransport(0)
        await transport.start()

        await asyncio.gather(transport.close(), transport.close())

        assert transport.status == ServerStatus.STOPPED

    async def test_port_is_released_after_close(self) -> None:
        first = BidiHttpTransport(0)
        await first.start()
        port = first.port
        await first.close()

        second = BidiHttpTransport(port)
        await second.start()
        try:
            assert second.is_running
        finally:
            await second.close()

    async def test_bind_conflict_raises_port_bind_error(self, running: BidiHttpTransport) -> None:
        contender = BidiHttpTransport(running.port)
        statuses: list[ServerStatus] = []
        contender.status_changed.subscribe(statuses.append)

        with pytest.raises(PortBindError) as exc_info:
            await contender.start()

        assert exc_info.value.port == running.port
        assert str(running.port) in str(exc_info.value)
        assert contender.status == ServerStatus.STOPPED
        assert statuses == [ServerStatus.STARTING, ServerStatus.STOPPED]
        assert running.is_running


class TestHeldRequests:
    async def test_response_completes_held_request(self, running: BidiHttpTransport) -> None:
        handler = HeldHandler()
        running.set_message_handler(handler)

        async with httpx.AsyncClient(trust_env=False) as client:
            post = asyncio.create_task(
                client.post(url(running), json={"jsonrpc": "2.0", "id": 42, "method": "tools/call"})
            )
            await asyncio.wait_for(handler.arrived.wait(), timeout=5)
            assert running.pending_count == 1

            await running.send({"jsonrpc": "2.0", "id": 42, "result": {"content": []}})
            response = await asyncio.wait_for(post, timeout=5)

        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "id": 42, "result": {"content": []}}
        assert running.pending_count == 0

    async def test_late_response_is_ignored(self, running: BidiHttpTransport) -> None:
        await running.send({"jsonrpc": "2.0", "id": 99, "result": {}})

        assert running.pending_count == 0

    async def test_outbound_notification_is_ignored(self, running: BidiHttpTransport) -> None:
        await running.send({"jsonrpc": "2.0", "method": "notifications/progress"})

        assert running.pending_count == 0

    async def test_close_answers_held_requests_with_503(self) -> None:
        transport = BidiHttpTransport(0)
        await transport.start()
        handler = HeldHandler()
        transport.set_message_handler(handler)

        async with httpx.AsyncClient(trust_env=False) as client:
            post = asyncio.create_task(
                client.post(url(transport), json={"jsonrpc": "2.0", "id": "slow", "method": "tools/call"})
            )
            await asyncio.wait_for(handler.arrived.wait(), timeout=5)

            await transport.close()
            response = await asyncio.wait_for(post, timeout=5)

        assert response.status_code == 503
        assert transport.pending_count == 0


class TestHandover:
    async def test_new_instance_takes_over_port(self, free_port: int, fast_handover: HandoverConfig) -> None:
        old = BidiHttpTransport(free_port, handover=fast_handover)
        await old.start()
        old_statuses: list[ServerStatus] = []
        old.status_changed.subscribe(old_statuses.append)

        new = BidiHttpTransport(free_port, handover=fast_handover)
        try:
            assert await new.request_handover() is True

            assert new.status == ServerStatus.RUNNING
            assert new.port == free_port
            assert old.status == ServerStatus.STOPPED
            assert old_statuses == [ServerStatus.STOPPED]

            async with httpx.AsyncClient(trust_env=False) as client:
                response = await client.get(url(new, "/ping"))
            assert response.json()["serverRunning"] is True
        finally:
            await new.close()
            await old.close()

    async def test_starts_directly_when_nobody_listens(
        self, free_port: int, fast_handover: HandoverConfig
    ) -> None:
        transport = BidiHttpTransport(free_port, handover=fast_handover)
        statuses: list[ServerStatus] = []
        transport.status_changed.subscribe(statuses.append)

        try:
            assert await transport.request_handover() is True
            assert transport.status == ServerStatus.RUNNING
            assert statuses == [ServerStatus.STARTING, ServerStatus.RUNNING]
        finally:
            await transport.close()
