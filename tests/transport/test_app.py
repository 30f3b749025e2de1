"""Tests for the bridge HTTP routes, served in-process with TestClient."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from mcp_bridge.constants import TOOLS_UPDATED_MESSAGE
from mcp_bridge.transport.bidi_http import BidiHttpTransport
from mcp_bridge.transport.status import ServerStatus


@pytest.fixture
def transport() -> BidiHttpTransport:
    return BidiHttpTransport(0)


@pytest.fixture
def client(transport: BidiHttpTransport) -> TestClient:
    return TestClient(transport.app)


def echo_handler(transport: BidiHttpTransport, received: list[dict[str, Any]]):
    """Async handler answering every request with its own method name."""

    async def handle(message: dict[str, Any]) -> None:
        received.append(message)
        if "id" in message:
            await transport.send({"jsonrpc": "2.0", "id": message["id"], "result": {"method": message["method"]}})

    return handle


class TestPing:
    def test_ping_reports_status(self, client: TestClient) -> None:
        response = client.get("/ping")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["serverRunning"] is False
        assert data["timestamp"].endswith("Z")

    def test_every_request_reports_activity(self, transport: BidiHttpTransport, client: TestClient) -> None:
        paths: list[str] = []
        transport.activity.subscribe(paths.append)

        client.get("/ping")
        client.post("/notify-tools-updated")

        assert paths == ["/ping", "/notify-tools-updated"]


class TestNotifyToolsUpdated:
    def test_sets_status_and_notifies(self, transport: BidiHttpTransport, client: TestClient) -> None:
        notifications: list[str] = []
        transport.notifications.subscribe(notifications.append)

        response = client.post("/notify-tools-updated")

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert transport.status == ServerStatus.TOOL_LIST_UPDATED
        assert notifications == [TOOLS_UPDATED_MESSAGE]

    def test_tools_list_clears_updated_status(self, transport: BidiHttpTransport, client: TestClient) -> None:
        received: list[dict[str, Any]] = []
        transport.set_message_handler(echo_handler(transport, received))
        client.post("/notify-tools-updated")

        response = client.post("/", json={"jsonrpc": "2.0", "id": 3, "method": "tools/list"})

        assert response.status_code == 200
        assert transport.status == ServerStatus.RUNNING

    def test_other_methods_keep_updated_status(self, transport: BidiHttpTransport, client: TestClient) -> None:
        received: list[dict[str, Any]] = []
        transport.set_message_handler(echo_handler(transport, received))
        client.post("/notify-tools-updated")

        client.post("/", json={"jsonrpc": "2.0", "id": 4, "method": "ping"})

        assert transport.status == ServerStatus.TOOL_LIST_UPDATED


class TestInboundMessages:
    def test_request_is_answered_with_handler_response(
        self, transport: BidiHttpTransport, client: TestClient
    ) -> None:
        received: list[dict[str, Any]] = []
        transport.set_message_handler(echo_handler(transport, received))

        response = client.post("/", json={"jsonrpc": "2.0", "id": "abc", "method": "initialize"})

        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "id": "abc", "result": {"method": "initialize"}}
        assert transport.pending_count == 0

    def test_notification_is_acknowledged(self, transport: BidiHttpTransport, client: TestClient) -> None:
        received: list[dict[str, Any]] = []
        transport.set_message_handler(received.append)

        response = client.post("/", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert received == [{"jsonrpc": "2.0", "method": "notifications/initialized"}]

    def test_client_response_is_acknowledged(self, transport: BidiHttpTransport, client: TestClient) -> None:
        received: list[dict[str, Any]] = []
        transport.set_message_handler(received.append)

        response = client.post("/", json={"jsonrpc": "2.0", "result": {"ok": True}})

        assert response.json() == {"success": True}
        assert len(received) == 1

    def test_no_handler_is_500(self, client: TestClient) -> None:
        response = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})

        assert response.status_code == 500
        assert response.json()["error"] == "No message handler"

    def test_invalid_json_is_500(self, transport: BidiHttpTransport, client: TestClient) -> None:
        transport.set_message_handler(lambda message: None)

        response = client.post("/", content=b"{not json", headers={"content-type": "application/json"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Invalid JSON body"

    def test_non_object_body_is_500(self, transport: BidiHttpTransport, client: TestClient) -> None:
        transport.set_message_handler(lambda message: None)

        response = client.post("/", json=[1, 2, 3])

        assert response.status_code == 500

    def test_sync_handler_exception_is_500(self, transport: BidiHttpTransport, client: TestClient) -> None:
        def explode(message: dict[str, Any]) -> None:
            raise RuntimeError("handler exploded")

        transport.set_message_handler(explode)

        response = client.post("/", json={"jsonrpc": "2.0", "id": 9, "method": "ping"})

        assert response.status_code == 500
        assert response.json()["detail"] == "handler exploded"
        assert transport.pending_count == 0

    def test_async_handler_exception_is_500(self, transport: BidiHttpTransport, client: TestClient) -> None:
        async def explode(message: dict[str, Any]) -> None:
            raise ValueError("async handler exploded")

        transport.set_message_handler(explode)

        response = client.post("/", json={"jsonrpc": "2.0", "id": 10, "method": "ping"})

        assert response.status_code == 500
        assert response.json()["detail"] == "async handler exploded"
        assert transport.pending_count == 0

    def test_notification_handler_exception_still_acknowledged(
        self, transport: BidiHttpTransport, client: TestClient
    ) -> None:
        async def explode(message: dict[str, Any]) -> None:
            raise ValueError("ignored")

        transport.set_message_handler(explode)

        response = client.post("/", json={"jsonrpc": "2.0", "method": "notifications/cancelled"})

        assert response.status_code == 200
