"""Interactive confirmation for operations that were not auto-approved.

The ConfirmationGateway first asks the policy engine whether the operation
can be auto-approved. If not, it asks a human through one of two
interchangeable strategies, selected by the ``confirmationUI`` setting:

- "quickPick" -> PromptConfirmationStrategy: a menu with Approve / Deny /
  Auto-Approval Settings, followed by an optional feedback prompt on deny.
- "statusBar" -> PendingConfirmationStrategy: a pending confirmation that an
  external UI (status bar buttons, web panel) resolves; times out to deny.

The concrete UI surfaces are external collaborators. They plug in through
the Prompter protocol or by resolving pending confirmations.
"""

from __future__ import annotations

__all__ = [
    "ClickPrompter",
    "ConfirmationGateway",
    "ConfirmationOutcome",
    "ConfirmationRequest",
    "ConfirmationResult",
    "ConfirmationStrategy",
    "PendingConfirmation",
    "PendingConfirmationStrategy",
    "PromptConfirmationStrategy",
    "PromptOption",
    "Prompter",
]

import asyncio
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Protocol, Sequence

import click

from mcp_bridge.approval.policy import AutoApprovalPolicyEngine, OperationContext
from mcp_bridge.events import EventChannel
from mcp_bridge.telemetry.system_logger import get_system_logger

FEEDBACK_TITLE = "Feedback"
FEEDBACK_PLACEHOLDER = "Add context for the agent (optional)"


class ConfirmationOutcome(Enum):
    """Outcome of a confirmation request."""

    AUTO_APPROVED = "auto_approved"
    USER_APPROVED = "user_approved"
    USER_DENIED = "user_denied"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the human is asked to confirm.

    Attributes:
        message: Title, e.g. "Execute command?".
        detail: Extra detail, e.g. the command line.
        approve_label: Label for the approve choice.
        deny_label: Label for the deny choice.
        context: Operation attempt, when the caller has one.
    """

    message: str
    detail: str = ""
    approve_label: str = "Approve"
    deny_label: str = "Deny"
    context: OperationContext | None = None


@dataclass(frozen=True)
class ConfirmationResult:
    """Result of a confirmation request.

    Attributes:
        outcome: How the request was decided.
        feedback: Optional text the human gave along with a denial.
        response_time_ms: How long the decision took.
    """

    outcome: ConfirmationOutcome
    feedback: str | None = None
    response_time_ms: float = 0.0

    @property
    def approved(self) -> bool:
        return self.outcome in (ConfirmationOutcome.AUTO_APPROVED, ConfirmationOutcome.USER_APPROVED)


class ConfirmationStrategy(Protocol):
    """One way of asking a human to approve an operation."""

    async def ask(self, request: ConfirmationRequest) -> ConfirmationResult: ...


# =============================================================================
# Prompt strategy ("quickPick")
# =============================================================================


@dataclass(frozen=True)
class PromptOption:
    """One entry of a choice menu."""

    key: str
    label: str
    description: str = ""


class Prompter(Protocol):
    """UI collaborator able to show a choice menu and a text input.

    Both methods return None when the user dismisses the prompt.
    """

    async def choose(self, title: str, placeholder: str, options: Sequence[PromptOption]) -> str | None: ...

    async def ask_text(self, title: str, placeholder: str) -> str | None: ...


class ClickPrompter:
    """Terminal prompter built on click prompts.

    The blocking prompt runs in a worker thread so the event loop keeps
    serving other requests while the human decides.
    """

    async def choose(self, title: str, placeholder: str, options: Sequence[PromptOption]) -> str | None:
        return await asyncio.to_thread(self._choose_blocking, title, placeholder, options)

    async def ask_text(self, title: str, placeholder: str) -> str | None:
        return await asyncio.to_thread(self._ask_text_blocking, title, placeholder)

    @staticmethod
    def _choose_blocking(title: str, placeholder: str, options: Sequence[PromptOption]) -> str | None:
        click.echo(click.style(title, bold=True), err=True)
        if placeholder:
            click.echo(f"  {placeholder}", err=True)
        for index, option in enumerate(options, start=1):
            suffix = f" - {option.description}" if option.description else ""
            click.echo(f"  [{index}] {option.label}{suffix}", err=True)
        try:
            choice = click.prompt(
                "Select",
                type=click.IntRange(1, len(options)),
                err=True,
            )
        except (click.Abort, EOFError):
            return None
        return options[choice - 1].key

    @staticmethod
    def _ask_text_blocking(title: str, placeholder: str) -> str | None:
        try:
            return click.prompt(f"{title} ({placeholder})", default="", show_default=False, err=True)
        except (click.Abort, EOFError):
            return None


class PromptConfirmationStrategy:
    """Menu-based confirmation: Approve, Deny, or open the auto-approval settings.

    Choosing the settings entry opens the settings and denies the request;
    dismissing the menu denies as well. A deny asks for optional feedback
    that is passed back to the agent.
    """

    def __init__(
        self,
        prompter: Prompter,
        *,
        status_description: Callable[[], str] | None = None,
        open_settings: Callable[[], None] | None = None,
    ) -> None:
        self._prompter = prompter
        self._status_description = status_description
        self._open_settings = open_settings

    async def ask(self, request: ConfirmationRequest) -> ConfirmationResult:
        started = time.perf_counter()
        options = [
            PromptOption("approve", "Approve", request.approve_label),
            PromptOption("deny", "Deny", request.deny_label),
        ]
        if request.context is not None and self._status_description is not None:
            options.append(
                PromptOption("settings", "Auto-Approval Settings", f"Current: {self._status_description()}")
            )

        choice = await self._prompter.choose(request.message, request.detail, options)

        if choice == "approve":
            return ConfirmationResult(ConfirmationOutcome.USER_APPROVED, response_time_ms=_elapsed_ms(started))

        if choice == "settings":
            if self._open_settings is not None:
                self._open_settings()
            return ConfirmationResult(ConfirmationOutcome.USER_DENIED, response_time_ms=_elapsed_ms(started))

        feedback = None
        if choice == "deny":
            text = await self._prompter.ask_text(FEEDBACK_TITLE, FEEDBACK_PLACEHOLDER)
            feedback = text.strip() if text and text.strip() else None
        return ConfirmationResult(
            ConfirmationOutcome.USER_DENIED,
            feedback=feedback,
            response_time_ms=_elapsed_ms(started),
        )


# =============================================================================
# Pending strategy ("statusBar")
# =============================================================================


class PendingConfirmation:
    """Pending confirmation with async wait capability.

    The typical lifecycle is:
    1. Strategy creates PendingConfirmation and announces it
    2. Strategy calls wait() to block until decision or timeout
    3. UI calls resolve() with the decision
    4. wait() returns with the decision
    """

    def __init__(self, request: ConfirmationRequest) -> None:
        self.id = uuid.uuid4().hex
        self.request = request
        self._decision_event = asyncio.Event()
        self._approved: bool | None = None
        self._feedback: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self._decision_event.is_set()

    def resolve(self, approved: bool, feedback: str | None = None) -> None:
        """Resolve with a decision; later calls are ignored."""
        if self._decision_event.is_set():
            return
        self._approved = approved
        self._feedback = feedback
        self._decision_event.set()

    async def wait(self, timeout: float) -> tuple[bool | None, str | None]:
        """Wait for a decision with timeout.

        Returns:
            Tuple of (approved, feedback). approved is None on timeout.
        """
        try:
            await asyncio.wait_for(self._decision_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return None, None
        return self._approved, self._feedback


class PendingConfirmationStrategy:
    """Confirmation resolved asynchronously by an external UI.

    New pending confirmations are announced on ``requested``; the UI calls
    resolve() with the id. Unanswered confirmations deny after the timeout.
    """

    def __init__(self, timeout_provider: Callable[[], float]) -> None:
        self._timeout_provider = timeout_provider
        self._pending: dict[str, PendingConfirmation] = {}
        self.requested: EventChannel[PendingConfirmation] = EventChannel("confirmation_requested")

    @property
    def pending(self) -> tuple[PendingConfirmation, ...]:
        return tuple(self._pending.values())

    def resolve(self, confirmation_id: str, approved: bool, feedback: str | None = None) -> bool:
        """Resolve a pending confirmation.

        Returns:
            False if no confirmation with that id is pending.
        """
        pending = self._pending.get(confirmation_id)
        if pending is None:
            return False
        pending.resolve(approved, feedback.strip() if feedback and feedback.strip() else None)
        return True

    async def ask(self, request: ConfirmationRequest) -> ConfirmationResult:
        started = time.perf_counter()
        pending = PendingConfirmation(request)
        self._pending[pending.id] = pending
        try:
            self.requested.emit(pending)
            approved, feedback = await pending.wait(self._timeout_provider())
        finally:
            self._pending.pop(pending.id, None)

        if approved is None:
            get_system_logger().warning(
                {
                    "event": "confirmation_timeout",
                    "message": f"Confirmation timed out: {request.message}",
                    "confirmation_id": pending.id,
                }
            )
            return ConfirmationResult(ConfirmationOutcome.TIMEOUT, response_time_ms=_elapsed_ms(started))
        outcome = ConfirmationOutcome.USER_APPROVED if approved else ConfirmationOutcome.USER_DENIED
        return ConfirmationResult(outcome, feedback=feedback, response_time_ms=_elapsed_ms(started))


# =============================================================================
# Gateway
# =============================================================================


class ConfirmationGateway:
    """Auto-approve when policy allows, otherwise ask via the configured strategy."""

    def __init__(
        self,
        policy_engine: AutoApprovalPolicyEngine,
        strategies: Mapping[str, ConfirmationStrategy],
        ui_selector: Callable[[], str],
        *,
        default_ui: str = "quickPick",
    ) -> None:
        """Initialize the gateway.

        Args:
            policy_engine: Engine consulted before asking anyone.
            strategies: Strategies by confirmationUI value.
            ui_selector: Returns the configured confirmationUI value.
            default_ui: Strategy used for unknown selector values.

        Raises:
            ValueError: If default_ui has no registered strategy.
        """
        if default_ui not in strategies:
            raise ValueError(f"No confirmation strategy registered for default UI '{default_ui}'")
        self._policy_engine = policy_engine
        self._strategies = dict(strategies)
        self._ui_selector = ui_selector
        self._default_ui = default_ui
        self.notifications: EventChannel[str] = EventChannel("confirmation_notifications")

    def _select_strategy(self) -> ConfirmationStrategy:
        selected = self._ui_selector()
        strategy = self._strategies.get(selected)
        if strategy is None:
            get_system_logger().warning(
                {
                    "event": "unknown_confirmation_ui",
                    "message": f"Unknown confirmation UI '{selected}', using '{self._default_ui}'",
                }
            )
            strategy = self._strategies[self._default_ui]
        return strategy

    async def confirm(
        self,
        message: str,
        detail: str = "",
        approve_label: str = "Approve",
        deny_label: str = "Deny",
        context: OperationContext | None = None,
    ) -> ConfirmationResult:
        """Confirm an operation.

        Args:
            message: Confirmation title.
            detail: Additional detail, e.g. the command.
            approve_label: Label for the approve choice.
            deny_label: Label for the deny choice.
            context: Operation attempt; enables auto-approval when given.

        Returns:
            The confirmation result.
        """
        if context is not None and self._policy_engine.can_auto_approve(context):
            self.notifications.emit(f"Auto-approved: {context.description}")
            return ConfirmationResult(ConfirmationOutcome.AUTO_APPROVED)

        request = ConfirmationRequest(
            message=message,
            detail=detail,
            approve_label=approve_label,
            deny_label=deny_label,
            context=context,
        )
        return await self._select_strategy().ask(request)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
