"""
Resume scheduling - "run again after N".

Two tiers:
1. Local wait: sub-minute delay and enough budget left -> sleep in-process
   and continue the dispatch loop. No external state is created.
2. External timer: anything else -> register a one-shot timer that re-invokes
   the host with a fresh ResumeContext (invocation + 1), then end the current
   host invocation. Timers have whole-minute granularity.

Timer backends:
- InMemoryTimerBackend: records registrations (local runs, tests)
- CloudWatchEventsTimerBackend: stack_clients.cloudwatch_events transport
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from provocation.budget import TimeBudget
from provocation.errors import SchedulingError
from provocation.schemas import (
    HandlerErrorCode,
    OperationRequest,
    OperationStatus,
    ProgressEvent,
    ResumeContext,
)
from provocation.utils import sanitize_error_message

logger = logging.getLogger(__name__)


class TimerBackend(ABC):
    """
    Abstract base class for delayed-invocation facilities.

    register() must record its bookkeeping (rule name, target id) on the
    request's ResumeContext before persisting the request, so the next
    invocation can clean the timer up.
    """

    def refresh_client(self) -> None:
        """Rebuild transport clients after credentials changed."""
        pass

    @abstractmethod
    def register(self, function_arn: Optional[str], delay_minutes: int, request: OperationRequest) -> None:
        """
        Register a one-shot timer that re-invokes the host with request.

        Raises:
            Exception: If the timer could not be registered
        """
        pass

    @abstractmethod
    def cleanup(self, rule_name: str, target_id: Optional[str]) -> None:
        """
        Delete a previously registered timer.

        Raises:
            Exception: If the timer could not be removed
        """
        pass


@dataclass(frozen=True)
class ScheduledTimer:
    """A timer registration recorded by InMemoryTimerBackend."""
    rule_name: str
    target_id: str
    function_arn: Optional[str]
    delay_minutes: int
    payload: dict


class InMemoryTimerBackend(TimerBackend):
    """
    Timer backend that keeps registrations in memory.

    The recorded payload is exactly what a real backend would hand back to
    the host on re-invocation.
    """

    def __init__(self):
        self.timers: dict[str, ScheduledTimer] = {}
        self.removed: list[str] = []

    def register(self, function_arn: Optional[str], delay_minutes: int, request: OperationRequest) -> None:
        suffix = uuid.uuid4().hex
        rule_name = f"reinvoke-handler-{suffix}"
        target_id = f"reinvoke-target-{suffix}"
        request.resume_context.rule_name = rule_name
        request.resume_context.target_id = target_id
        self.timers[rule_name] = ScheduledTimer(
            rule_name=rule_name,
            target_id=target_id,
            function_arn=function_arn,
            delay_minutes=delay_minutes,
            payload=request.to_dict(),
        )

    def cleanup(self, rule_name: str, target_id: Optional[str]) -> None:
        if self.timers.pop(rule_name, None) is not None:
            self.removed.append(rule_name)


def delay_in_minutes(delay_seconds: int) -> int:
    """Whole-minute timer delay for a requested delay (at least one minute)."""
    return max(1, abs(delay_seconds) // 60)


class ResumeScheduler:
    """
    Decides between continuing locally and suspending via an external timer.

    Usage:
        scheduler = ResumeScheduler(InMemoryTimerBackend())
        keep_going = scheduler.schedule(request, event, budget, function_arn)
    """

    def __init__(self, backend: TimerBackend, sleep: Callable[[float], None] = time.sleep):
        self.backend = backend
        self._sleep = sleep

    def refresh_client(self) -> None:
        self.backend.refresh_client()

    def cleanup(self, context: Optional[ResumeContext]) -> None:
        """
        Remove the timer that triggered this invocation, if any.

        Idempotent: a context without a trigger is a no-op. Backend failures
        are logged and never raised; a dangling one-shot rule is harmless.
        """
        if context is None or not context.has_trigger:
            return
        try:
            self.backend.cleanup(context.rule_name, context.target_id)
        except Exception as e:
            logger.warning(
                "Failed to clean up timer %s (target %s): %s",
                context.rule_name,
                context.target_id,
                sanitize_error_message(e),
            )
            return
        logger.info(
            "Cleaned up previous resume context of rule %s and target %s",
            context.rule_name,
            context.target_id,
        )

    def schedule(
        self,
        request: OperationRequest,
        event: ProgressEvent,
        budget: TimeBudget,
        function_arn: Optional[str] = None,
    ) -> bool:
        """
        Decide how the operation continues after a handler call.

        Args:
            request: The request being processed; its resume_context is replaced
            event: The latest handler result; forced to FAILED if a timer
                cannot be registered
            budget: Remaining budget of the current host invocation
            function_arn: Target the timer re-invokes

        Returns:
            True to continue the dispatch loop locally, False to exit
        """
        if event.status != OperationStatus.IN_PROGRESS:
            return False

        delay = event.callback_delay_seconds
        current = request.invocation

        if budget.allows_local_wait(delay):
            request.resume_context = ResumeContext(
                invocation=current,
                callback_context=event.callback_context,
            )
            logger.info(
                "Scheduling re-invoke locally after %s seconds (invocation %s)",
                delay,
                current,
            )
            self._sleep(abs(delay))
            return True

        request.resume_context = ResumeContext(
            invocation=current + 1,
            callback_context=event.callback_context,
        )
        minutes = delay_in_minutes(delay)
        logger.info(
            "Scheduling re-invoke in %s minute(s) (invocation %s)",
            minutes,
            current + 1,
        )
        try:
            self.backend.register(function_arn, minutes, request)
        except Exception as e:
            error = SchedulingError(f"Failed to schedule re-invoke: {sanitize_error_message(e)}")
            logger.error(str(error))
            event.fail(HandlerErrorCode.INTERNAL_FAILURE, str(error))
        return False
