"""Tests for the built-in message handler and the bridge runner."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import httpx
import pytest

from mcp_bridge import __version__
from mcp_bridge.approval.confirmation import ConfirmationGateway, ConfirmationOutcome
from mcp_bridge.approval.policy import OperationContext, OperationType
from mcp_bridge.config import BridgeConfig, HandoverConfig
from mcp_bridge.lifecycle.manager import LifecycleManager
from mcp_bridge.server import METHOD_NOT_FOUND, BridgeContext, BuiltinMessageHandler, run_bridge
from mcp_bridge.transport.bidi_http import BidiHttpTransport
from mcp_bridge.transport.status import ServerStatus


class RecordingTransport:
    """Captures what the handler sends."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send(self, message: dict[str, Any]) -> None:
        self.sent.append(message)


@pytest.fixture
def recording() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def handler(recording: RecordingTransport) -> BuiltinMessageHandler:
    return BuiltinMessageHandler(recording)  # type: ignore[arg-type]


class TestBuiltinMessageHandler:
    async def test_initialize(self, handler: BuiltinMessageHandler, recording: RecordingTransport) -> None:
        await handler({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2025-03-26"}})

        result = recording.sent[0]["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["capabilities"]["tools"]["listChanged"] is True
        assert result["serverInfo"] == {"name": "mcp-bridge", "version": __version__}

    async def test_ping(self, handler: BuiltinMessageHandler, recording: RecordingTransport) -> None:
        await handler({"jsonrpc": "2.0", "id": "p", "method": "ping"})

        assert recording.sent == [{"jsonrpc": "2.0", "id": "p", "result": {}}]

    async def test_tools_list_is_empty(self, handler: BuiltinMessageHandler, recording: RecordingTransport) -> None:
        await handler({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

        assert recording.sent[0]["result"] == {"tools": []}

    async def test_unknown_method(self, handler: BuiltinMessageHandler, recording: RecordingTransport) -> None:
        await handler({"jsonrpc": "2.0", "id": 3, "method": "resources/list"})

        error = recording.sent[0]["error"]
        assert error["code"] == METHOD_NOT_FOUND
        assert "resources/list" in error["message"]

    async def test_notifications_are_not_answered(
        self, handler: BuiltinMessageHandler, recording: RecordingTransport
    ) -> None:
        await handler({"jsonrpc": "2.0", "method": "notifications/initialized"})
        await handler({"jsonrpc": "2.0", "id": 4, "result": {}})

        assert recording.sent == []


class TestRunBridge:
    def make_config(self, port: int, log_dir: Path, **overrides: Any) -> BridgeConfig:
        return BridgeConfig(
            port=port,
            logging={"logDir": str(log_dir)},
            handover=HandoverConfig(settle_delay_seconds=0.5, request_timeout_seconds=2.0),
            **overrides,
        )

    async def test_serves_until_shutdown(self, free_port: int, tmp_path: Path) -> None:
        manager = LifecycleManager(install_process_hooks=False)
        started: list[BridgeContext] = []

        def factory(context: BridgeContext) -> BuiltinMessageHandler:
            started.append(context)
            return BuiltinMessageHandler(context.transport)

        task = asyncio.create_task(
            run_bridge(self.make_config(free_port, tmp_path), handler_factory=factory, handover=False, lifecycle=manager)
        )
        while manager.transport is None:
            await asyncio.sleep(0.01)

        async with httpx.AsyncClient(trust_env=False) as client:
            response = await client.post(
                f"http://127.0.0.1:{free_port}/", json={"jsonrpc": "2.0", "id": 1, "method": "ping"}
            )
        assert response.json() == {"jsonrpc": "2.0", "id": 1, "result": {}}

        await manager.shutdown()
        transport = await asyncio.wait_for(task, timeout=5)

        assert transport is started[0].transport
        assert transport.status == ServerStatus.STOPPED

    async def test_handler_factory_receives_confirmation_gateway(self, free_port: int, tmp_path: Path) -> None:
        """The gateway handed to handlers applies the configured auto-approval policy."""
        config = self.make_config(
            free_port,
            tmp_path / "logs",
            auto_approval={"enabled": True, "permissions": {"read": {"enabled": True}}},
            workspace_roots=(str(tmp_path),),
        )
        manager = LifecycleManager(install_process_hooks=False)
        contexts: list[BridgeContext] = []

        def factory(context: BridgeContext) -> BuiltinMessageHandler:
            contexts.append(context)
            return BuiltinMessageHandler(context.transport)

        task = asyncio.create_task(run_bridge(config, handler_factory=factory, handover=False, lifecycle=manager))
        while manager.transport is None:
            await asyncio.sleep(0.01)

        try:
            context = contexts[0]
            result = await context.confirmation.confirm(
                "Read file",
                context=OperationContext(
                    operation=OperationType.READ,
                    description="read notes.txt",
                    file_path=str(tmp_path / "notes.txt"),
                ),
            )

            assert isinstance(context.confirmation, ConfirmationGateway)
            assert context.config is config
            assert result.outcome == ConfirmationOutcome.AUTO_APPROVED
            assert context.policy_engine.get_status_description() == "Auto-approval enabled for: Read"
        finally:
            await manager.shutdown()
            await asyncio.wait_for(task, timeout=5)

    async def test_exits_when_port_is_taken_over(self, free_port: int, tmp_path: Path) -> None:
        config = self.make_config(free_port, tmp_path)
        manager = LifecycleManager(install_process_hooks=False)
        task = asyncio.create_task(run_bridge(config, handover=False, lifecycle=manager))
        while manager.transport is None:
            await asyncio.sleep(0.01)

        successor = BidiHttpTransport(free_port, handover=config.handover)
        try:
            await successor.request_handover()
            await asyncio.wait_for(task, timeout=5)

            assert manager.shutdown_reason == "port_released"
            assert successor.is_running
        finally:
            await successor.close()
