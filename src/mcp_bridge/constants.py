"""Application-wide constants for mcp-bridge.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "DEFAULT_LOG_DIR",
    # Transport
    "DEFAULT_BRIDGE_PORT",
    "BRIDGE_HOST",
    "HTTP_LISTEN_BACKLOG",
    "SERVER_STARTUP_TIMEOUT_SECONDS",
    "SERVER_STARTUP_POLL_INTERVAL_SECONDS",
    "CLOSE_TIMEOUT_SECONDS",
    "TOOLS_LIST_METHOD",
    "TOOLS_UPDATED_MESSAGE",
    # Handover
    "HANDOVER_SETTLE_DELAY_SECONDS",
    "HANDOVER_REQUEST_TIMEOUT_SECONDS",
    "HANDOVER_RETRY_DELAY_SECONDS",
    # Lifecycle
    "HEARTBEAT_INTERVAL_SECONDS",
    "CLIENT_TIMEOUT_SECONDS",
    "SHUTDOWN_TIMEOUT_SECONDS",
    "FORCE_EXIT_DELAY_SECONDS",
    # Auto-approval
    "DEFAULT_MAX_REQUESTS",
    "DEFAULT_TIME_WINDOW_MINUTES",
    "DEFAULT_RETRY_DELAY_SECONDS",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "PROTECTED_FILE_PATTERNS",
    # CLI
    "CLI_HTTP_TIMEOUT_SECONDS",
]

from platformdirs import user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for logger names, directory names, etc.
APP_NAME: str = "mcp-bridge"

# Platform-specific log directory (file logging is opt-in via config)
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

# ============================================================================
# Transport Configuration
# ============================================================================

# Well-known port the JSON-RPC client connects to
DEFAULT_BRIDGE_PORT: int = 60100

# The bridge only ever listens on loopback
BRIDGE_HOST: str = "127.0.0.1"

# Number of pending connections the listening socket queues
HTTP_LISTEN_BACKLOG: int = 100

# Upper bound for uvicorn to report it is serving on the bound socket
SERVER_STARTUP_TIMEOUT_SECONDS: float = 5.0
SERVER_STARTUP_POLL_INTERVAL_SECONDS: float = 0.01

# Grace period for close(); lingering connections are force-terminated after it
CLOSE_TIMEOUT_SECONDS: float = 5.0

# Tool enumeration request; clears the tool_list_updated status
TOOLS_LIST_METHOD: str = "tools/list"

TOOLS_UPDATED_MESSAGE: str = (
    "The tool list has been updated. Restart the MCP client to pick up the new tool list."
)

# ============================================================================
# Handover Protocol
# ============================================================================

# Wait between handover (or its failure) and binding, covers OS port release
HANDOVER_SETTLE_DELAY_SECONDS: float = 1.0

# Timeout for the POST /request-handover call itself
HANDOVER_REQUEST_TIMEOUT_SECONDS: float = 5.0

# Spacing between retries of a handover request that failed transiently
HANDOVER_RETRY_DELAY_SECONDS: float = 0.5

# ============================================================================
# Lifecycle Management
# ============================================================================

# How often the heartbeat checks for client idleness (seconds)
HEARTBEAT_INTERVAL_SECONDS: float = 30.0

# Shut down after this long without client activity (seconds)
CLIENT_TIMEOUT_SECONDS: float = 300.0

# Outer bound for graceful shutdown before escalating to forced shutdown
SHUTDOWN_TIMEOUT_SECONDS: float = 10.0

# Delay before forced process termination so log handlers can flush
FORCE_EXIT_DELAY_SECONDS: float = 0.1

# ============================================================================
# Auto-Approval Defaults
# ============================================================================

DEFAULT_MAX_REQUESTS: int = 100
DEFAULT_TIME_WINDOW_MINUTES: float = 60
DEFAULT_RETRY_DELAY_SECONDS: float = 10
DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 60

# Files that writes never auto-approve unless protected files are explicitly included.
# Glob-like: ** spans segments, * stays within one segment, ? is a single character.
PROTECTED_FILE_PATTERNS: tuple[str, ...] = (
    ".git/**",
    ".vscode/**",
    "node_modules/**",
    "**/.env",
    "**/.env.*",
    "**/package-lock.json",
    "**/yarn.lock",
    "**/pnpm-lock.yaml",
    "**/*.key",
    "**/*.pem",
    "**/*.p12",
)

# ============================================================================
# CLI
# ============================================================================

# Timeout for CLI calls against a running bridge
CLI_HTTP_TIMEOUT_SECONDS: float = 5.0
