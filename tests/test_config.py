"""Tests for bridge configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from mcp_bridge.config import (
    AutoApprovalConfig,
    BridgeConfig,
    HandoverConfig,
    RateLimitConfig,
    load_bridge_config,
)
from mcp_bridge.constants import DEFAULT_BRIDGE_PORT
from mcp_bridge.exceptions import ConfigurationError


class TestDefaults:
    """Tests for built-in defaults."""

    def test_auto_approval_disabled_by_default(self) -> None:
        """Fresh config never auto-approves anything."""
        config = BridgeConfig()

        assert config.port == DEFAULT_BRIDGE_PORT
        assert config.auto_approval.enabled is False
        assert config.auto_approval.permissions.write.enabled is False
        assert config.auto_approval.permissions.execute.allowed_commands == ()
        assert config.confirmation_ui == "quickPick"

    def test_rate_limit_window_in_seconds(self) -> None:
        limits = RateLimitConfig(time_window_minutes=2)

        assert limits.window_seconds == 120

    def test_handover_does_not_retry_by_default(self) -> None:
        assert HandoverConfig().retries == 0


class TestAliases:
    """Settings accept the host's camelCase keys as well as snake_case."""

    def test_camel_case_keys(self) -> None:
        config = BridgeConfig.model_validate(
            {
                "confirmationUI": "statusBar",
                "workspaceRoots": ["/work"],
                "autoApproval": {
                    "enabled": True,
                    "permissions": {
                        "write": {"enabled": True, "includeProtectedFiles": True},
                        "execute": {"enabled": True, "allowedCommands": ["npm test"]},
                    },
                    "limits": {"maxRequests": 5, "timeWindowMinutes": 1},
                },
            }
        )

        assert config.confirmation_ui == "statusBar"
        assert config.workspace_roots == ("/work",)
        assert config.auto_approval.permissions.write.include_protected_files is True
        assert config.auto_approval.permissions.execute.allowed_commands == ("npm test",)
        assert config.auto_approval.limits.max_requests == 5

    def test_snake_case_keys(self) -> None:
        config = AutoApprovalConfig.model_validate(
            {"enabled": True, "permissions": {"read": {"include_outside_workspace": True}}}
        )

        assert config.permissions.read.include_outside_workspace is True

    def test_dump_by_alias_round_trips_confirmation_ui(self) -> None:
        data = BridgeConfig(confirmation_ui="statusBar").model_dump(by_alias=True)

        assert data["confirmationUI"] == "statusBar"
        assert "autoApproval" in data


class TestValidation:
    """Invalid values are rejected."""

    def test_unknown_confirmation_ui_rejected(self) -> None:
        with pytest.raises(ValidationError):
            BridgeConfig.model_validate({"confirmationUI": "popup"})

    def test_port_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            BridgeConfig(port=70000)

    def test_config_is_frozen(self) -> None:
        config = BridgeConfig()

        with pytest.raises(ValidationError):
            config.port = 1234  # type: ignore[misc]


class TestLoadBridgeConfig:
    """Tests for load_bridge_config()."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_bridge_config(tmp_path / "absent.json")

        assert config == BridgeConfig()

    def test_loads_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"port": 61000, "autoApproval": {"enabled": True}}))

        config = load_bridge_config(path)

        assert config.port == 61000
        assert config.auto_approval.enabled is True

    def test_invalid_json_raises_configuration_error(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_bridge_config(path)

    def test_invalid_values_name_the_field(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"autoApproval": {"limits": {"maxRequests": -1}}}))

        with pytest.raises(ConfigurationError, match="maxRequests"):
            load_bridge_config(path)

    def test_top_level_must_be_object(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigurationError, match="expected a JSON object"):
            load_bridge_config(path)
