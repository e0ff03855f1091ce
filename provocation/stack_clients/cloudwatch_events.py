"""
CloudWatch Events client - IO boundary for re-invocation timers.

Each timer is a one-shot rule with a cron() expression for the target minute
and a single target: the host function, with the serialized request (carrying
its fresh ResumeContext) as input.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from provocation.credentials import SessionCredentialsProvider
from provocation.scheduler import TimerBackend
from provocation.schemas import OperationRequest

logger = logging.getLogger(__name__)


def one_shot_cron(minutes_from_now: int, now: Optional[datetime] = None) -> str:
    """
    Build a cron() expression that fires once, minutes_from_now in the future.

    Args:
        minutes_from_now: Delay in whole minutes
        now: Reference time (defaults to current UTC time)

    Returns:
        Schedule expression, e.g. "cron(41 14 18 10 ? 2026)"
    """
    now = now or datetime.now(timezone.utc)
    at = now + timedelta(minutes=minutes_from_now)
    return f"cron({at.minute} {at.hour} {at.day} {at.month} ? {at.year})"


class CloudWatchEventsTimerBackend(TimerBackend):
    """
    Timer backend on CloudWatch Events (EventBridge) rules.

    Usage:
        backend = CloudWatchEventsTimerBackend(platform_credentials)
        backend.refresh_client()
        backend.register(function_arn, 5, request)
    """

    def __init__(
        self,
        credentials_provider: SessionCredentialsProvider,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._credentials_provider = credentials_provider
        self._clock = clock
        self._client = None

    def refresh_client(self) -> None:
        self._client = self._credentials_provider.client("events")

    def _events(self):
        if self._client is None:
            raise RuntimeError("CloudWatch Events client has not been initialised")
        return self._client

    def register(self, function_arn: Optional[str], delay_minutes: int, request: OperationRequest) -> None:
        if not function_arn:
            raise ValueError("A function ARN is required to register a re-invocation timer")

        suffix = uuid.uuid4().hex
        rule_name = f"reinvoke-handler-{suffix}"
        target_id = f"reinvoke-target-{suffix}"
        request.resume_context.rule_name = rule_name
        request.resume_context.target_id = target_id

        events = self._events()
        events.put_rule(
            Name=rule_name,
            ScheduleExpression=one_shot_cron(delay_minutes, self._clock()),
            State="ENABLED",
        )
        events.put_targets(
            Rule=rule_name,
            Targets=[{
                "Id": target_id,
                "Arn": function_arn,
                "Input": json.dumps(request.to_dict(), default=str),
            }],
        )
        logger.info("Registered rule %s to fire in %s minute(s)", rule_name, delay_minutes)

    def cleanup(self, rule_name: str, target_id: Optional[str]) -> None:
        events = self._events()
        if target_id:
            events.remove_targets(Rule=rule_name, Ids=[target_id])
        events.delete_rule(Name=rule_name)
