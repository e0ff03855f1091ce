"""
Callback reporting - tell the external orchestrator the current status.

Reporters must be safe to call many times per logical operation (once per
invocation cycle for mutating actions). Duplicate reports of the same status
are tolerated downstream; nothing here deduplicates.

Reporters:
- InMemoryCallbackReporter: records every report (local runs, tests)
- CloudFormationCallbackReporter: stack_clients.cloudformation transport
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from provocation.schemas import HandlerErrorCode, OperationStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressReport:
    """One status transition sent to the external orchestrator."""
    bearer_token: str
    status: OperationStatus
    previous_status: OperationStatus
    error_code: Optional[HandlerErrorCode] = None
    resource_model: Optional[Any] = None
    message: Optional[str] = None


class CallbackReporter(ABC):
    """
    Abstract base class for progress reporting.

    refresh_client() is called once per host invocation after the callback
    endpoint and platform credentials are known; implementations reuse
    whatever they can across invocations.
    """

    def set_endpoint(self, endpoint: str, region: Optional[str] = None) -> None:
        """Point the reporter at the callback endpoint of the current request."""
        pass

    def refresh_client(self) -> None:
        """Rebuild transport clients after credentials or endpoint changed."""
        pass

    @abstractmethod
    def report(
        self,
        bearer_token: str,
        error_code: Optional[HandlerErrorCode],
        status: OperationStatus,
        previous_status: OperationStatus,
        resource_model: Optional[Any] = None,
        message: Optional[str] = None,
    ) -> None:
        """
        Report a status transition.

        Args:
            bearer_token: Correlation id of the logical operation
            error_code: Error classification (FAILED only)
            status: New status
            previous_status: Status the orchestrator believed it was in
            resource_model: Current resource model, if any
            message: Human-readable status message

        Raises:
            Exception: If the transport fails; the orchestrator converts it
        """
        pass


class InMemoryCallbackReporter(CallbackReporter):
    """
    Callback reporter that records reports in order.

    Used by the local CLI and by tests. Every report is also logged.
    """

    def __init__(self):
        self.reports: list[ProgressReport] = []
        self.endpoint: Optional[str] = None

    def set_endpoint(self, endpoint: str, region: Optional[str] = None) -> None:
        self.endpoint = endpoint

    def report(
        self,
        bearer_token: str,
        error_code: Optional[HandlerErrorCode],
        status: OperationStatus,
        previous_status: OperationStatus,
        resource_model: Optional[Any] = None,
        message: Optional[str] = None,
    ) -> None:
        logger.info(
            "Progress %s -> %s for %s%s",
            previous_status.value,
            status.value,
            bearer_token,
            f" ({error_code.value})" if error_code else "",
        )
        self.reports.append(ProgressReport(
            bearer_token=bearer_token,
            status=status,
            previous_status=previous_status,
            error_code=error_code,
            resource_model=resource_model,
            message=message,
        ))

    def statuses(self) -> list[OperationStatus]:
        return [r.status for r in self.reports]
