"""Rate limiting for auto-approved operations.

Counts auto-approval attempts per operation kind (read, write, execute, ...)
in a fixed window that restarts once it has elapsed. The limiter is global per
operation kind, not per caller: a runaway client hammering writes exhausts the
write quota for everyone, which is the point.

When the limit is reached the policy engine denies auto-approval and the
operation falls back to interactive confirmation.

Usage:
    limiter = RateLimiter()

    if not limiter.check("write", max_requests=100, window_seconds=3600):
        # Fall back to asking a human
        ...

    # Operator-triggered recovery after a lockout
    limiter.reset()
"""

from __future__ import annotations

__all__ = [
    "RateLimiter",
    "RateWindowRecord",
]

from dataclasses import dataclass, field
from time import monotonic
from typing import Callable


@dataclass(slots=True)
class RateWindowRecord:
    """Counter for one operation kind.

    Attributes:
        count: Auto-approvals granted in the current window.
        window_start: Clock reading when the window opened.
    """

    count: int
    window_start: float


@dataclass(slots=True)
class RateLimiter:
    """Track auto-approval counts per operation kind using a fixed window.

    Thread-safety: This class is NOT thread-safe. The bridge runs on a single
    event loop and check() has no suspension points, so no locking is needed.

    Attributes:
        clock: Monotonic time source in seconds (injectable for tests).
    """

    clock: Callable[[], float] = monotonic

    # Internal state: {operation_kind: RateWindowRecord}
    _records: dict[str, RateWindowRecord] = field(default_factory=dict)

    def check(self, operation: str, max_requests: int, window_seconds: float) -> bool:
        """Check and record one attempt for an operation kind.

        Window semantics:
        - no record, or the record is older than the window: open a fresh
          window with count 1 and allow
        - count already at max_requests: deny without incrementing
        - otherwise: increment and allow

        Args:
            operation: Operation kind the attempt belongs to.
            max_requests: Attempts allowed per window.
            window_seconds: Window length.

        Returns:
            True if the attempt is within the limit.
        """
        now = self.clock()
        record = self._records.get(operation)

        if record is None or now - record.window_start > window_seconds:
            self._records[operation] = RateWindowRecord(count=1, window_start=now)
            return True

        if record.count >= max_requests:
            return False

        record.count += 1
        return True

    def get_record(self, operation: str) -> RateWindowRecord | None:
        """Get the current record for an operation kind without recording an attempt."""
        return self._records.get(operation)

    def reset(self) -> None:
        """Clear all counters unconditionally."""
        self._records.clear()

    @property
    def tracked_operations(self) -> int:
        """Number of operation kinds currently being tracked."""
        return len(self._records)
