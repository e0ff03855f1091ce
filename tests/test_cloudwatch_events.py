"""Tests for the CloudWatch Events timer backend."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from provocation.schemas import Action, OperationRequest, ResumeContext
from provocation.stack_clients.cloudwatch_events import CloudWatchEventsTimerBackend, one_shot_cron

NOW = datetime(2026, 10, 18, 14, 36, tzinfo=timezone.utc)


@pytest.fixture
def events_client():
    return MagicMock()


@pytest.fixture
def timer_backend(events_client):
    provider = MagicMock()
    provider.client.return_value = events_client
    backend = CloudWatchEventsTimerBackend(provider, clock=lambda: NOW)
    backend.refresh_client()
    return backend


class TestOneShotCron:

    def test_minutes_from_now(self):
        assert one_shot_cron(5, NOW) == "cron(41 14 18 10 ? 2026)"

    def test_rolls_over_day(self):
        late = datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc)
        assert one_shot_cron(2, late) == "cron(1 0 1 1 ? 2027)"


class TestCloudWatchEventsTimerBackend:

    def test_register(self, timer_backend, events_client):
        request = OperationRequest(
            action=Action.CREATE,
            bearer_token="token-1",
            resume_context=ResumeContext(invocation=1, callback_context={"a": 1}),
        )

        timer_backend.register("arn:fn", 5, request)

        rule_name = request.resume_context.rule_name
        target_id = request.resume_context.target_id
        assert rule_name.startswith("reinvoke-handler-")
        assert target_id.startswith("reinvoke-target-")

        events_client.put_rule.assert_called_once_with(
            Name=rule_name,
            ScheduleExpression="cron(41 14 18 10 ? 2026)",
            State="ENABLED",
        )
        target = events_client.put_targets.call_args.kwargs["Targets"][0]
        assert target["Id"] == target_id
        assert target["Arn"] == "arn:fn"
        persisted = json.loads(target["Input"])
        assert persisted["bearerToken"] == "token-1"
        assert persisted["requestContext"] == {
            "invocation": 1,
            "callbackContext": {"a": 1},
            "cloudWatchEventsRuleName": rule_name,
            "cloudWatchEventsTargetId": target_id,
        }

    def test_register_requires_function_arn(self, timer_backend):
        request = OperationRequest(action=Action.CREATE, bearer_token="t", resume_context=ResumeContext())
        with pytest.raises(ValueError, match="function ARN"):
            timer_backend.register(None, 1, request)

    def test_cleanup(self, timer_backend, events_client):
        timer_backend.cleanup("rule-1", "target-1")

        events_client.remove_targets.assert_called_once_with(Rule="rule-1", Ids=["target-1"])
        events_client.delete_rule.assert_called_once_with(Name="rule-1")

    def test_cleanup_without_target(self, timer_backend, events_client):
        timer_backend.cleanup("rule-1", None)

        events_client.remove_targets.assert_not_called()
        events_client.delete_rule.assert_called_once_with(Name="rule-1")

    def test_requires_refresh(self):
        backend = CloudWatchEventsTimerBackend(MagicMock())
        with pytest.raises(RuntimeError, match="not been initialised"):
            backend.cleanup("rule-1", None)
