"""Auto-approval policy engine.

Decides, per operation attempt, whether a sensitive operation may proceed
without interactive confirmation.

Decision order (short-circuits on the first deny):
1. Global switch: auto-approval disabled -> deny
2. Rate limit for the operation kind (consumes quota when allowed)
3. Per-operation-kind permission:
   - read: enabled; outside-workspace paths need include_outside_workspace
   - write: enabled; outside-workspace paths need include_outside_workspace;
     protected files need include_protected_files
   - execute: enabled AND the command matches the allow-list
   - debug, terminal, browser: single boolean gates
4. Unknown operation kinds -> deny (closed world)

A deny is a normal outcome fed back into the confirmation path, never an
exception. Configuration is re-read through the provider on every decision
because the host may change settings at any time.
"""

from __future__ import annotations

__all__ = [
    "AutoApprovalPolicyEngine",
    "OperationContext",
    "OperationType",
    "command_matches",
]

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from mcp_bridge.approval.protected_paths import ProtectedFileMatcher, WorkspaceBoundary
from mcp_bridge.approval.rate_limiter import RateLimiter
from mcp_bridge.config import AutoApprovalConfig, PermissionSet
from mcp_bridge.telemetry.system_logger import get_system_logger


class OperationType(str, Enum):
    """Operation kinds that can be auto-approved."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    DEBUG = "debug"
    TERMINAL = "terminal"
    BROWSER = "browser"


@dataclass(frozen=True, slots=True)
class OperationContext:
    """One operation attempt, built at the call site and never persisted.

    Attributes:
        operation: Operation kind. Plain strings are accepted so that kinds
            unknown to this engine reach the closed-world deny.
        description: Human-readable summary shown in notifications.
        file_path: Target file for read/write operations.
        command: Command line for execute operations.
        is_destructive: Informational flag set by the tool layer.
    """

    operation: OperationType | str
    description: str
    file_path: str | None = None
    command: str | None = None
    is_destructive: bool = False


def command_matches(command: str, pattern: str) -> bool:
    """Check a command line against one allow-list entry.

    - pattern containing ``*``: wildcard, ``*`` is zero or more of any
      character, the rest is literal, anchored to the whole command
    - otherwise: exact match, or the pattern followed by a space
      (``npm`` matches ``npm install`` but not ``npmfoo``)
    """
    if "*" in pattern:
        regex = ".*".join(re.escape(part) for part in pattern.split("*"))
        return re.fullmatch(regex, command, flags=re.DOTALL) is not None
    return command == pattern or command.startswith(pattern + " ")


class AutoApprovalPolicyEngine:
    """Decide whether operations may skip interactive confirmation.

    Explicitly constructed and injected; every instance owns its own rate
    limiter unless one is shared on purpose.
    """

    def __init__(
        self,
        config_provider: Callable[[], AutoApprovalConfig],
        *,
        workspace_roots: Iterable[str] = (),
        rate_limiter: RateLimiter | None = None,
        protected_files: ProtectedFileMatcher | None = None,
    ) -> None:
        """Initialize the policy engine.

        Args:
            config_provider: Returns the current auto-approval settings.
            workspace_roots: Workspace folders for the boundary checks.
            rate_limiter: Shared limiter; a private one is created if None.
            protected_files: Protected-file matcher; defaults to the built-in patterns.
        """
        self._config_provider = config_provider
        self._boundary = WorkspaceBoundary(workspace_roots)
        self._rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self._protected_files = protected_files if protected_files is not None else ProtectedFileMatcher()
        self._logger = get_system_logger()

    @property
    def rate_limiter(self) -> RateLimiter:
        """The limiter whose state step 2 mutates."""
        return self._rate_limiter

    @property
    def workspace(self) -> WorkspaceBoundary:
        return self._boundary

    def can_auto_approve(self, context: OperationContext) -> bool:
        """Decide whether an operation can proceed without confirmation.

        Args:
            context: The operation attempt.

        Returns:
            True to auto-approve, False to require interactive confirmation.
        """
        config = self._config_provider()
        kind = context.operation.value if isinstance(context.operation, OperationType) else str(context.operation)

        if not config.enabled:
            return self._decide(kind, False, "auto_approval_disabled")

        limits = config.limits
        if not self._rate_limiter.check(kind, limits.max_requests, limits.window_seconds):
            self._logger.warning(
                {
                    "event": "rate_limit_exceeded",
                    "message": f"Rate limit exceeded for operation: {kind}",
                    "operation": kind,
                    "max_requests": limits.max_requests,
                    "time_window_minutes": limits.time_window_minutes,
                }
            )
            return False

        try:
            operation = OperationType(kind)
        except ValueError:
            return self._decide(kind, False, "unknown_operation")

        permissions = config.permissions
        if operation is OperationType.READ:
            approved, reason = self._check_read(permissions, context)
        elif operation is OperationType.WRITE:
            approved, reason = self._check_write(permissions, context)
        elif operation is OperationType.EXECUTE:
            approved, reason = self._check_execute(permissions, context)
        else:
            gate = getattr(permissions, operation.value)
            approved, reason = gate.enabled, f"{operation.value}_gate"

        return self._decide(kind, approved, reason)

    def _check_read(self, permissions: PermissionSet, context: OperationContext) -> tuple[bool, str]:
        if not permissions.read.enabled:
            return False, "read_disabled"
        if context.file_path and not self._boundary.contains(context.file_path):
            return permissions.read.include_outside_workspace, "read_outside_workspace"
        return True, "read_enabled"

    def _check_write(self, permissions: PermissionSet, context: OperationContext) -> tuple[bool, str]:
        write = permissions.write
        if not write.enabled:
            return False, "write_disabled"
        if context.file_path:
            if not self._boundary.contains(context.file_path) and not write.include_outside_workspace:
                return False, "write_outside_workspace"
            if self.is_protected_file(context.file_path) and not write.include_protected_files:
                return False, "write_protected_file"
        return True, "write_enabled"

    def _check_execute(self, permissions: PermissionSet, context: OperationContext) -> tuple[bool, str]:
        execute = permissions.execute
        if not execute.enabled:
            return False, "execute_disabled"
        if not context.command:
            return False, "execute_without_command"
        if any(command_matches(context.command, p) for p in execute.allowed_commands):
            return True, "command_allowed"
        return False, "command_not_allowed"

    def is_protected_file(self, file_path: str) -> bool:
        """Check a path against the protected patterns.

        With no workspace roots every file counts as protected, since there
        is nothing to anchor the relative patterns against.
        """
        if not self._boundary.roots:
            return True
        return self._protected_files.matches(self._boundary.candidate_path(file_path))

    def _decide(self, kind: str, approved: bool, reason: str) -> bool:
        self._logger.debug(
            {
                "event": "auto_approval_decision",
                "message": f"Auto-approval {'granted' if approved else 'denied'} for {kind} ({reason})",
                "operation": kind,
                "approved": approved,
                "reason": reason,
            }
        )
        return approved

    def reset_rate_limits(self) -> None:
        """Clear all rate-limit counters (operator recovery after a lockout)."""
        self._rate_limiter.reset()
        self._logger.info({"event": "rate_limits_reset", "message": "Auto-approval rate limits reset"})

    def get_status_description(self) -> str:
        """Human-readable summary of the current auto-approval settings."""
        config = self._config_provider()
        if not config.enabled:
            return "Auto-approval is disabled"

        enabled = [
            operation.value.capitalize()
            for operation in OperationType
            if getattr(config.permissions, operation.value).enabled
        ]
        if not enabled:
            return "Auto-approval enabled but no operations allowed"
        return f"Auto-approval enabled for: {', '.join(enabled)}"
