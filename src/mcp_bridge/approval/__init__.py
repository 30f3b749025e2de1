"""Auto-approval of sensitive operations.

Components:
- RateLimiter: per-operation-kind window counters
- WorkspaceBoundary / ProtectedFileMatcher: path checks
- AutoApprovalPolicyEngine: the approve/deny decision
- ConfirmationGateway: falls back to a human via a ConfirmationStrategy
"""

from mcp_bridge.approval.confirmation import (
    ClickPrompter,
    ConfirmationGateway,
    ConfirmationOutcome,
    ConfirmationRequest,
    ConfirmationResult,
    ConfirmationStrategy,
    PendingConfirmation,
    PendingConfirmationStrategy,
    PromptConfirmationStrategy,
    PromptOption,
    Prompter,
)
from mcp_bridge.approval.policy import (
    AutoApprovalPolicyEngine,
    OperationContext,
    OperationType,
    command_matches,
)
from mcp_bridge.approval.protected_paths import ProtectedFileMatcher, WorkspaceBoundary
from mcp_bridge.approval.rate_limiter import RateLimiter, RateWindowRecord

__all__ = [
    "AutoApprovalPolicyEngine",
    "ClickPrompter",
    "ConfirmationGateway",
    "ConfirmationOutcome",
    "ConfirmationRequest",
    "ConfirmationResult",
    "ConfirmationStrategy",
    "OperationContext",
    "OperationType",
    "PendingConfirmation",
    "PendingConfirmationStrategy",
    "PromptConfirmationStrategy",
    "PromptOption",
    "Prompter",
    "ProtectedFileMatcher",
    "RateLimiter",
    "RateWindowRecord",
    "WorkspaceBoundary",
    "command_matches",
]
