"""
Metrics publishing for handler invocations.

Three metrics per host invocation lifecycle:
- invocation: once per host invocation, after structural validation
- duration: once per handler call, whether it succeeded or raised
- exception: once per classified failure (error code, not the raw exception)

MetricsPublisherProxy fans out to every configured publisher so the
orchestrator publishes through a single object.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from provocation.schemas import Action, HandlerErrorCode
from provocation.stack_clients import event_client as ec
from provocation.utils import sanitize_error_message

logger = logging.getLogger(__name__)


class MetricsPublisher(ABC):
    """Abstract base class for metrics sinks."""

    def bind(
        self,
        *,
        resource_type: Optional[str],
        account_id: Optional[str],
        correlation_id: Optional[str],
    ) -> None:
        """Attach the dimensions of the current request."""
        pass

    @abstractmethod
    def publish_invocation_metric(self, timestamp: datetime, action: Action) -> None:
        pass

    @abstractmethod
    def publish_duration_metric(self, timestamp: datetime, action: Action, milliseconds: int) -> None:
        pass

    @abstractmethod
    def publish_exception_metric(
        self,
        timestamp: datetime,
        action: Optional[Action],
        error: BaseException,
        error_code: HandlerErrorCode,
    ) -> None:
        pass


class MetricsPublisherProxy(MetricsPublisher):
    """
    Forwards every metric to all registered publishers.

    A failing publisher is logged and skipped; metrics never fail an invocation.
    """

    def __init__(self, publishers: Optional[list[MetricsPublisher]] = None):
        self._publishers: list[MetricsPublisher] = list(publishers or [])

    def add_publisher(self, publisher: MetricsPublisher) -> None:
        self._publishers.append(publisher)

    @property
    def publishers(self) -> list[MetricsPublisher]:
        return list(self._publishers)

    def _each(self, method: str, *args, **kwargs) -> None:
        for publisher in self._publishers:
            try:
                getattr(publisher, method)(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    "%s.%s failed: %s",
                    type(publisher).__name__,
                    method,
                    sanitize_error_message(e),
                )

    def bind(self, *, resource_type, account_id, correlation_id) -> None:
        self._each("bind", resource_type=resource_type, account_id=account_id, correlation_id=correlation_id)

    def publish_invocation_metric(self, timestamp: datetime, action: Action) -> None:
        self._each("publish_invocation_metric", timestamp, action)

    def publish_duration_metric(self, timestamp: datetime, action: Action, milliseconds: int) -> None:
        self._each("publish_duration_metric", timestamp, action, milliseconds)

    def publish_exception_metric(self, timestamp, action, error, error_code) -> None:
        self._each("publish_exception_metric", timestamp, action, error, error_code)


class EventLogMetricsPublisher(MetricsPublisher):
    """
    Writes metrics as event envelopes to the BigQuery event_log table.

    Usage:
        from google.cloud import bigquery

        publisher = EventLogMetricsPublisher(bigquery.Client(), dataset="provider_events")
    """

    def __init__(self, bq_client, dataset: Optional[str] = None):
        self._bq_client = bq_client
        self._dataset = dataset
        self._resource_type: Optional[str] = None
        self._account_id: Optional[str] = None
        self._correlation_id: Optional[str] = None

    def bind(self, *, resource_type, account_id, correlation_id) -> None:
        self._resource_type = resource_type
        self._account_id = account_id
        self._correlation_id = correlation_id

    def _log(self, event_type: str, timestamp: datetime, payload: dict, status: str = "ok",
             error_message: Optional[str] = None) -> None:
        payload = {"timestamp": timestamp.isoformat(), **payload}
        if self._account_id:
            payload["account_id"] = self._account_id
        ec.log_event(
            event_type=event_type,
            source_system=self._resource_type or "provocation",
            correlation_id=self._correlation_id or "unbound",
            bq_client=self._bq_client,
            status=status,
            dataset=self._dataset,
            error_message=error_message,
            payload=payload,
        )

    def publish_invocation_metric(self, timestamp: datetime, action: Action) -> None:
        self._log("handler.invocation", timestamp, {"action": action.value})

    def publish_duration_metric(self, timestamp: datetime, action: Action, milliseconds: int) -> None:
        self._log("handler.duration", timestamp, {"action": action.value, "duration_ms": milliseconds})

    def publish_exception_metric(self, timestamp, action, error, error_code) -> None:
        self._log(
            "handler.exception",
            timestamp,
            {
                "action": action.value if action else None,
                "error_code": error_code.value,
                "error_type": type(error).__name__,
            },
            status="failed",
            error_message=sanitize_error_message(error),
        )
