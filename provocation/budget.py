"""
Time budget tracking for a single host invocation.

Wraps the host's "remaining execution time" signal into the decision
primitive the resume scheduler needs: is there room to wait locally?
"""

import time
from typing import Any, Callable

# Local waits are only allowed for delays strictly below this cutoff.
LOCAL_DELAY_CUTOFF_SECONDS = 60

# Remaining budget must exceed delay * 1.2 (kept in integer millis) ...
LOCAL_WAIT_MILLIS_PER_SECOND = 1200

# ... plus the time the orchestrator needs to finish its own bookkeeping.
INVOCATION_SAFETY_MARGIN_MS = 60000


class TimeBudget:
    """
    Remaining wall-clock budget of the current host invocation.

    Usage:
        budget = TimeBudget.from_context(lambda_context)
        budget = TimeBudget.fixed(900_000)  # local runs and tests
    """

    def __init__(self, remaining_millis: Callable[[], int]):
        self._remaining_millis = remaining_millis

    @classmethod
    def from_context(cls, context: Any) -> "TimeBudget":
        """Build from a host context exposing get_remaining_time_in_millis()."""
        return cls(context.get_remaining_time_in_millis)

    @classmethod
    def fixed(cls, total_millis: int, clock: Callable[[], float] = time.monotonic) -> "TimeBudget":
        """Build a budget that counts down from total_millis on the given clock."""
        deadline = clock() + total_millis / 1000.0

        def remaining() -> int:
            return max(0, int((deadline - clock()) * 1000))

        return cls(remaining)

    def remaining_millis(self) -> int:
        return int(self._remaining_millis())

    def allows_local_wait(self, delay_seconds: int) -> bool:
        """
        Check whether a local wait of delay_seconds is safe.

        True only for sub-minute delays that leave a 20% buffer plus the
        invocation safety margin.
        """
        if delay_seconds >= LOCAL_DELAY_CUTOFF_SECONDS:
            return False
        required = abs(delay_seconds) * LOCAL_WAIT_MILLIS_PER_SECOND + INVOCATION_SAFETY_MARGIN_MS
        return self.remaining_millis() > required

    def __repr__(self) -> str:
        return f"TimeBudget(remaining_millis={self.remaining_millis()})"
