"""Application configuration for mcp-bridge.

Defines the read-only configuration surface consumed by the bridge: the
listening port, the auto-approval settings, the confirmation UI selector,
handover retry behaviour and logging.

The settings are owned by an external host (an editor's settings store in the
typical deployment); the bridge only reads them. Keys are accepted in the
host's camelCase form (``autoApproval``, ``allowedCommands``) as well as in
snake_case.

Example usage:
    config = load_bridge_config(settings_path)
    engine = AutoApprovalPolicyEngine(lambda: config.auto_approval, workspace_roots=[...])
"""

from __future__ import annotations

__all__ = [
    "AutoApprovalConfig",
    "BridgeConfig",
    "ConfirmationUI",
    "DEFAULT_SETTINGS_FILENAME",
    "ExecutePermission",
    "GatePermission",
    "HandoverConfig",
    "LoggingConfig",
    "PermissionSet",
    "RateLimitConfig",
    "ReadPermission",
    "WritePermission",
    "default_settings_path",
    "load_bridge_config",
]

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mcp_bridge.constants import (
    DEFAULT_BRIDGE_PORT,
    DEFAULT_MAX_REQUESTS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_TIME_WINDOW_MINUTES,
    HANDOVER_REQUEST_TIMEOUT_SECONDS,
    HANDOVER_RETRY_DELAY_SECONDS,
    HANDOVER_SETTLE_DELAY_SECONDS,
)
from mcp_bridge.exceptions import ConfigurationError
from mcp_bridge.utils.file_helpers import get_app_dir, load_validated_json

DEFAULT_SETTINGS_FILENAME = "settings.json"

# Confirmation UI strategies selectable by configuration
ConfirmationUI = Literal["quickPick", "statusBar"]


class _SettingsModel(BaseModel):
    """Base for settings models: immutable, camelCase aliases, snake_case accepted."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Auto-Approval Configuration
# =============================================================================


class ReadPermission(_SettingsModel):
    """Read permission.

    Attributes:
        enabled: Auto-approve reads at all.
        include_outside_workspace: Also auto-approve reads outside the workspace.
    """

    enabled: bool = False
    include_outside_workspace: bool = False


class WritePermission(_SettingsModel):
    """Write permission.

    Attributes:
        enabled: Auto-approve writes at all.
        include_outside_workspace: Also auto-approve writes outside the workspace.
        include_protected_files: Also auto-approve writes to protected files
            (VCS metadata, editor settings, lock files, keys, env files).
    """

    enabled: bool = False
    include_outside_workspace: bool = False
    include_protected_files: bool = False


class ExecutePermission(_SettingsModel):
    """Command execution permission.

    Attributes:
        enabled: Auto-approve command execution at all.
        allowed_commands: Allow-list of command patterns. Empty means no
            command is ever auto-approved.
    """

    enabled: bool = False
    allowed_commands: tuple[str, ...] = ()


class GatePermission(_SettingsModel):
    """Single boolean gate (debug, terminal, browser)."""

    enabled: bool = False


class PermissionSet(_SettingsModel):
    """One permission record per operation kind."""

    read: ReadPermission = Field(default_factory=ReadPermission)
    write: WritePermission = Field(default_factory=WritePermission)
    execute: ExecutePermission = Field(default_factory=ExecutePermission)
    debug: GatePermission = Field(default_factory=GatePermission)
    terminal: GatePermission = Field(default_factory=GatePermission)
    browser: GatePermission = Field(default_factory=GatePermission)


class RateLimitConfig(_SettingsModel):
    """Fixed-window limits for auto-approved operations.

    Attributes:
        max_requests: Auto-approvals allowed per operation kind per window.
        time_window_minutes: Window length.
        retry_delay_seconds: Suggested wait for callers after a denial.
        request_timeout_seconds: Upper bound for an interactive confirmation.
    """

    max_requests: int = Field(default=DEFAULT_MAX_REQUESTS, ge=0)
    time_window_minutes: float = Field(default=DEFAULT_TIME_WINDOW_MINUTES, gt=0)
    retry_delay_seconds: float = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)

    @property
    def window_seconds(self) -> float:
        """Window length in seconds."""
        return self.time_window_minutes * 60


class AutoApprovalConfig(_SettingsModel):
    """Auto-approval settings.

    Attributes:
        enabled: Global switch; when False nothing is auto-approved.
        permissions: Per-operation permissions.
        limits: Rate limits applied before per-operation checks.
    """

    enabled: bool = False
    permissions: PermissionSet = Field(default_factory=PermissionSet)
    limits: RateLimitConfig = Field(default_factory=RateLimitConfig)


# =============================================================================
# Transport / Runtime Configuration
# =============================================================================


class HandoverConfig(_SettingsModel):
    """Handover behaviour for a starting instance.

    Attributes:
        retries: Extra attempts for a handover request that failed transiently
            (timeout, reset). A refused connection is never retried: it means
            nobody holds the port.
        retry_delay_seconds: Wait between those attempts.
        settle_delay_seconds: Wait before binding, covers OS port release latency.
        request_timeout_seconds: Timeout of a single handover request.
    """

    retries: int = Field(default=0, ge=0)
    retry_delay_seconds: float = Field(default=HANDOVER_RETRY_DELAY_SECONDS, ge=0)
    settle_delay_seconds: float = Field(default=HANDOVER_SETTLE_DELAY_SECONDS, ge=0)
    request_timeout_seconds: float = Field(default=HANDOVER_REQUEST_TIMEOUT_SECONDS, gt=0)


class LoggingConfig(_SettingsModel):
    """Logging configuration.

    Attributes:
        log_dir: Directory for system.jsonl. None uses the OS log directory.
        log_level: Console threshold ("DEBUG" shows every policy decision).
    """

    log_dir: str | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class BridgeConfig(_SettingsModel):
    """Complete bridge configuration.

    Attributes:
        port: Well-known port the client connects to.
        auto_approval: Auto-approval policy settings.
        confirmation_ui: Strategy used when an operation needs a human.
        workspace_roots: Workspace folders; paths outside count as outside-workspace.
        handover: Handover retry/settle behaviour.
        logging: Logging settings.
    """

    port: int = Field(default=DEFAULT_BRIDGE_PORT, ge=1, le=65535)
    auto_approval: AutoApprovalConfig = Field(default_factory=AutoApprovalConfig)
    confirmation_ui: ConfirmationUI = Field(default="quickPick", alias="confirmationUI")
    workspace_roots: tuple[str, ...] = ()
    handover: HandoverConfig = Field(default_factory=HandoverConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def default_settings_path() -> Path:
    """Default location of the settings file."""
    return get_app_dir() / DEFAULT_SETTINGS_FILENAME


def load_bridge_config(path: Path | None = None) -> BridgeConfig:
    """Load bridge settings from a JSON file.

    A missing file yields the defaults (auto-approval fully disabled).

    Args:
        path: Settings file. Defaults to default_settings_path().

    Returns:
        Validated BridgeConfig.

    Raises:
        ConfigurationError: If the file exists but is unreadable or invalid.
    """
    settings_path = path if path is not None else default_settings_path()
    if not settings_path.exists():
        return BridgeConfig()

    try:
        return load_validated_json(settings_path, BridgeConfig, file_type="settings")
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
