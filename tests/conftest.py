import copy

import pytest

from provocation.budget import TimeBudget
from provocation.callback import InMemoryCallbackReporter
from provocation.metrics import MetricsPublisher, MetricsPublisherProxy
from provocation.orchestrator import InvocationOrchestrator
from provocation.scheduler import InMemoryTimerBackend, ResumeScheduler
from provocation.stack_clients import event_client


BUCKET_SCHEMA = {
    "typeName": "Acme::Storage::Bucket",
    "type": "object",
    "properties": {
        "BucketName": {"type": "string"},
        "Arn": {"type": "string"},
        "Tags": {"type": "object"},
    },
    "required": ["BucketName"],
    "additionalProperties": False,
}

PLATFORM_CREDENTIALS = {
    "accessKeyId": "PLATFORMKEY",
    "secretAccessKey": "platform-secret",
    "sessionToken": "platform-session",
}


class RecordingMetricsPublisher(MetricsPublisher):
    """Keeps every published metric as a (kind, action, detail) tuple."""

    def __init__(self):
        self.records = []
        self.bound = None

    def bind(self, *, resource_type, account_id, correlation_id):
        self.bound = (resource_type, account_id, correlation_id)

    def publish_invocation_metric(self, timestamp, action):
        self.records.append(("invocation", action, None))

    def publish_duration_metric(self, timestamp, action, milliseconds):
        self.records.append(("duration", action, milliseconds))

    def publish_exception_metric(self, timestamp, action, error, error_code):
        self.records.append(("exception", action, error_code))

    def of_kind(self, kind):
        return [r for r in self.records if r[0] == kind]


@pytest.fixture(autouse=True)
def reset_event_client_mode():
    yield
    event_client.reset_run_mode()


@pytest.fixture
def schema():
    return copy.deepcopy(BUCKET_SCHEMA)


@pytest.fixture
def make_payload():
    """Factory for raw host payloads."""

    def _make(
        action="CREATE",
        properties=None,
        invocation=None,
        callback_context=None,
        rule_name=None,
        target_id=None,
        caller_credentials=False,
        **overrides,
    ):
        request_data = {
            "platformCredentials": dict(PLATFORM_CREDENTIALS),
            "logicalResourceId": "MyBucket",
            "resourceProperties": {"BucketName": "my-bucket"} if properties is None else properties,
            "stackTags": {"team": "storage"},
        }
        if caller_credentials:
            request_data["callerCredentials"] = {
                "accessKeyId": "CALLERKEY",
                "secretAccessKey": "caller-secret",
            }
        payload = {
            "action": action,
            "bearerToken": "token-123",
            "resourceType": "Acme::Storage::Bucket",
            "responseEndpoint": "https://cloudformation.us-east-1.amazonaws.com",
            "awsAccountId": "123456789012",
            "region": "us-east-1",
            "requestData": request_data,
        }
        if invocation is not None:
            context = {"invocation": invocation}
            if callback_context is not None:
                context["callbackContext"] = callback_context
            if rule_name is not None:
                context["cloudWatchEventsRuleName"] = rule_name
            if target_id is not None:
                context["cloudWatchEventsTargetId"] = target_id
            payload["requestContext"] = context
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def reporter():
    return InMemoryCallbackReporter()


@pytest.fixture
def backend():
    return InMemoryTimerBackend()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def scheduler(backend, sleeps):
    return ResumeScheduler(backend, sleep=sleeps.append)


@pytest.fixture
def recorder():
    return RecordingMetricsPublisher()


@pytest.fixture
def five_minutes():
    return TimeBudget(lambda: 300_000)


@pytest.fixture
def make_orchestrator(schema, reporter, scheduler, recorder):
    """Factory for orchestrators wired to in-memory collaborators."""

    def _make(handler, **kwargs):
        kwargs.setdefault("callback_reporter", reporter)
        kwargs.setdefault("scheduler", scheduler)
        kwargs.setdefault("metrics", MetricsPublisherProxy([recorder]))
        return InvocationOrchestrator(handler, kwargs.pop("schema", schema), **kwargs)

    return _make
