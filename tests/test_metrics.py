"""Tests for metrics publishing."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from provocation.errors import NotFoundError
from provocation.metrics import EventLogMetricsPublisher, MetricsPublisher, MetricsPublisherProxy
from provocation.schemas import Action, HandlerErrorCode

TS = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_bq_client():
    client = MagicMock()
    client.insert_rows_json.return_value = []
    return client


def _rows(client):
    return [c[0][1][0] for c in client.insert_rows_json.call_args_list]


class TestMetricsPublisherProxy:

    def test_fans_out(self):
        first, second = MagicMock(spec=MetricsPublisher), MagicMock(spec=MetricsPublisher)
        proxy = MetricsPublisherProxy([first])
        proxy.add_publisher(second)

        proxy.publish_duration_metric(TS, Action.CREATE, 25)

        first.publish_duration_metric.assert_called_once_with(TS, Action.CREATE, 25)
        second.publish_duration_metric.assert_called_once_with(TS, Action.CREATE, 25)
        assert proxy.publishers == [first, second]

    def test_failing_publisher_is_skipped(self):
        broken = MagicMock(spec=MetricsPublisher)
        broken.publish_invocation_metric.side_effect = RuntimeError("sink down")
        healthy = MagicMock(spec=MetricsPublisher)

        MetricsPublisherProxy([broken, healthy]).publish_invocation_metric(TS, Action.READ)

        healthy.publish_invocation_metric.assert_called_once_with(TS, Action.READ)

    def test_bind_forwards(self):
        publisher = MagicMock(spec=MetricsPublisher)
        MetricsPublisherProxy([publisher]).bind(resource_type="T", account_id="1", correlation_id="c")
        publisher.bind.assert_called_once_with(resource_type="T", account_id="1", correlation_id="c")

    def test_empty_proxy(self):
        MetricsPublisherProxy().publish_invocation_metric(TS, Action.LIST)


class TestEventLogMetricsPublisher:

    @pytest.fixture
    def publisher(self, mock_bq_client):
        publisher = EventLogMetricsPublisher(mock_bq_client, dataset="provider_events")
        publisher.bind(
            resource_type="Acme::Storage::Bucket",
            account_id="123456789012",
            correlation_id="token-123",
        )
        return publisher

    def test_invocation_metric(self, publisher, mock_bq_client):
        publisher.publish_invocation_metric(TS, Action.CREATE)

        (row,) = _rows(mock_bq_client)
        assert mock_bq_client.insert_rows_json.call_args[0][0] == "provider_events.event_log"
        assert row["event_type"] == "handler.invocation"
        assert row["source_system"] == "Acme::Storage::Bucket"
        assert row["correlation_id"] == "token-123"
        assert json.loads(row["payload"]) == {
            "timestamp": TS.isoformat(),
            "action": "CREATE",
            "account_id": "123456789012",
        }

    def test_duration_metric(self, publisher, mock_bq_client):
        publisher.publish_duration_metric(TS, Action.UPDATE, 1234)

        (row,) = _rows(mock_bq_client)
        assert row["event_type"] == "handler.duration"
        assert json.loads(row["payload"])["duration_ms"] == 1234

    def test_exception_metric(self, publisher, mock_bq_client):
        publisher.publish_exception_metric(
            TS, Action.DELETE, NotFoundError("bucket gone"), HandlerErrorCode.NOT_FOUND
        )

        (row,) = _rows(mock_bq_client)
        payload = json.loads(row["payload"])
        assert row["event_type"] == "handler.exception"
        assert row["status"] == "failed"
        assert row["error_message"] == "bucket gone"
        assert payload["error_code"] == "NotFound"
        assert payload["error_type"] == "NotFoundError"

    def test_exception_metric_without_action(self, publisher, mock_bq_client):
        publisher.publish_exception_metric(TS, None, OSError("disk"), HandlerErrorCode.INTERNAL_FAILURE)

        (row,) = _rows(mock_bq_client)
        assert json.loads(row["payload"])["action"] is None

    def test_unbound_defaults(self, mock_bq_client):
        EventLogMetricsPublisher(mock_bq_client, dataset="d").publish_invocation_metric(TS, Action.READ)

        (row,) = _rows(mock_bq_client)
        assert row["source_system"] == "provocation"
        assert row["correlation_id"] == "unbound"
