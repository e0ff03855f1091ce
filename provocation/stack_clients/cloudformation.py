"""
CloudFormation callback client - IO boundary for progress reports.

Sends each status transition through RecordHandlerProgress on the callback
endpoint carried by the request, signed with the platform credentials.
"""

import json
import logging
import uuid
from typing import Any, Optional

from provocation.callback import CallbackReporter
from provocation.credentials import SessionCredentialsProvider
from provocation.schemas import HandlerErrorCode, OperationStatus

logger = logging.getLogger(__name__)


class CloudFormationCallbackReporter(CallbackReporter):
    """
    Reports progress via cloudformation.record_handler_progress.

    Usage:
        reporter = CloudFormationCallbackReporter(platform_credentials)
        reporter.set_endpoint(request.response_endpoint, request.region)
        reporter.refresh_client()
        reporter.report(token, None, OperationStatus.IN_PROGRESS, OperationStatus.PENDING)
    """

    def __init__(self, credentials_provider: SessionCredentialsProvider):
        self._credentials_provider = credentials_provider
        self._endpoint: Optional[str] = None
        self._region: Optional[str] = None
        self._client = None

    def set_endpoint(self, endpoint: str, region: Optional[str] = None) -> None:
        self._endpoint = endpoint
        self._region = region

    def refresh_client(self) -> None:
        kwargs: dict[str, Any] = {"endpoint_url": self._endpoint}
        if self._region:
            kwargs["region_name"] = self._region
        self._client = self._credentials_provider.client("cloudformation", **kwargs)

    def report(
        self,
        bearer_token: str,
        error_code: Optional[HandlerErrorCode],
        status: OperationStatus,
        previous_status: OperationStatus,
        resource_model: Optional[Any] = None,
        message: Optional[str] = None,
    ) -> None:
        if self._client is None:
            raise RuntimeError("CloudFormation client has not been initialised")

        params: dict[str, Any] = {
            "BearerToken": bearer_token,
            "OperationStatus": status.value,
            "CurrentOperationStatus": previous_status.value,
            "ClientRequestToken": str(uuid.uuid4()),
        }
        if error_code is not None:
            params["ErrorCode"] = error_code.value
        if message:
            params["StatusMessage"] = message
        if resource_model is not None:
            params["ResourceModel"] = json.dumps(resource_model, default=str)

        logger.debug("Recording handler progress %s for %s", status.value, bearer_token)
        self._client.record_handler_progress(**params)
