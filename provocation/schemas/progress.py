"""
Progress schemas - the vocabulary exchanged between handler and orchestrator.

ProgressEvent is the structured result of one handler call. It drives the
continue / suspend / terminate decision in the orchestrator.
OrchestratorResponse mirrors the final ProgressEvent back to the host.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class OperationStatus(str, Enum):
    """Status of a resource lifecycle operation."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCESS, OperationStatus.FAILED)


class HandlerErrorCode(str, Enum):
    """
    Closed error taxonomy surfaced to the external orchestrator.

    InvalidRequest, GeneralServiceException and InternalFailure are produced
    by the runtime itself; the rest are declared by handlers and passed
    through unchanged.
    """
    NOT_UPDATABLE = "NotUpdatable"
    INVALID_REQUEST = "InvalidRequest"
    ACCESS_DENIED = "AccessDenied"
    INVALID_CREDENTIALS = "InvalidCredentials"
    ALREADY_EXISTS = "AlreadyExists"
    NOT_FOUND = "NotFound"
    RESOURCE_CONFLICT = "ResourceConflict"
    THROTTLING = "Throttling"
    SERVICE_LIMIT_EXCEEDED = "ServiceLimitExceeded"
    NOT_STABILIZED = "NotStabilized"
    GENERAL_SERVICE_EXCEPTION = "GeneralServiceException"
    SERVICE_INTERNAL_ERROR = "ServiceInternalError"
    NETWORK_FAILURE = "NetworkFailure"
    INTERNAL_FAILURE = "InternalFailure"


@dataclass
class ProgressEvent:
    """
    Result of a single handler call.

    Attributes:
        status: Operation status after this call
        error_code: Error classification, set iff status is FAILED
        message: Human-readable status message
        resource_model: Resource model (CREATE/UPDATE/DELETE/READ)
        resource_models: Resource models (LIST only)
        next_token: Pagination token (LIST only)
        callback_delay_seconds: Requested delay before the next call (IN_PROGRESS only)
        callback_context: Opaque handler state forwarded into the next call
    """
    status: OperationStatus
    error_code: Optional[HandlerErrorCode] = None
    message: Optional[str] = None
    resource_model: Optional[Any] = None
    resource_models: Optional[list[Any]] = None
    next_token: Optional[str] = None
    callback_delay_seconds: int = 0
    callback_context: Optional[dict[str, Any]] = None

    def __post_init__(self):
        if self.status == OperationStatus.FAILED and self.error_code is None:
            raise ValueError("FAILED progress events must carry an error_code")
        if self.status != OperationStatus.FAILED and self.error_code is not None:
            raise ValueError(f"{self.status.value} progress events must not carry an error_code")

    @classmethod
    def progress(
        cls,
        resource_model: Any = None,
        callback_context: Optional[dict[str, Any]] = None,
        callback_delay_seconds: int = 0,
        message: Optional[str] = None,
    ) -> "ProgressEvent":
        """Build an IN_PROGRESS event asking to be called again."""
        return cls(
            status=OperationStatus.IN_PROGRESS,
            resource_model=resource_model,
            callback_context=callback_context,
            callback_delay_seconds=callback_delay_seconds,
            message=message,
        )

    @classmethod
    def success(cls, resource_model: Any = None, message: Optional[str] = None) -> "ProgressEvent":
        return cls(status=OperationStatus.SUCCESS, resource_model=resource_model, message=message)

    @classmethod
    def listed(cls, resource_models: list[Any], next_token: Optional[str] = None) -> "ProgressEvent":
        return cls(status=OperationStatus.SUCCESS, resource_models=resource_models, next_token=next_token)

    @classmethod
    def failed(
        cls,
        error_code: HandlerErrorCode,
        message: Optional[str] = None,
        resource_model: Any = None,
    ) -> "ProgressEvent":
        return cls(
            status=OperationStatus.FAILED,
            error_code=error_code,
            message=message,
            resource_model=resource_model,
        )

    @classmethod
    def default_failure_handler(cls, error: BaseException, error_code: HandlerErrorCode) -> "ProgressEvent":
        """Convert an exception into a FAILED event with the given code."""
        return cls.failed(error_code, message=str(error) or type(error).__name__)

    def fail(self, error_code: HandlerErrorCode, message: Optional[str] = None) -> None:
        """Force this event to FAILED."""
        self.status = OperationStatus.FAILED
        self.error_code = error_code
        self.message = message
        self.callback_delay_seconds = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {"status": self.status.value}
        if self.error_code is not None:
            result["errorCode"] = self.error_code.value
        if self.message is not None:
            result["message"] = self.message
        if self.resource_model is not None:
            result["resourceModel"] = self.resource_model
        if self.resource_models is not None:
            result["resourceModels"] = self.resource_models
        if self.next_token is not None:
            result["nextToken"] = self.next_token
        if self.callback_delay_seconds:
            result["callbackDelaySeconds"] = self.callback_delay_seconds
        if self.callback_context is not None:
            result["callbackContext"] = self.callback_context
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProgressEvent":
        """Deserialize from dictionary."""
        return cls(
            status=OperationStatus(data["status"]),
            error_code=HandlerErrorCode(data["errorCode"]) if data.get("errorCode") else None,
            message=data.get("message"),
            resource_model=data.get("resourceModel"),
            resource_models=data.get("resourceModels"),
            next_token=data.get("nextToken"),
            callback_delay_seconds=data.get("callbackDelaySeconds", 0),
            callback_context=data.get("callbackContext"),
        )


@dataclass
class OrchestratorResponse:
    """
    The single structured response written back to the host per invocation.
    """
    operation_status: OperationStatus
    bearer_token: Optional[str] = None
    error_code: Optional[HandlerErrorCode] = None
    message: Optional[str] = None
    resource_model: Optional[Any] = None
    resource_models: Optional[list[Any]] = field(default=None)
    next_token: Optional[str] = None

    @classmethod
    def from_progress(cls, event: ProgressEvent, bearer_token: Optional[str]) -> "OrchestratorResponse":
        return cls(
            operation_status=event.status,
            bearer_token=bearer_token,
            error_code=event.error_code,
            message=event.message,
            resource_model=event.resource_model,
            resource_models=event.resource_models,
            next_token=event.next_token,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"operationStatus": self.operation_status.value}
        if self.bearer_token is not None:
            result["bearerToken"] = self.bearer_token
        if self.error_code is not None:
            result["errorCode"] = self.error_code.value
        if self.message is not None:
            result["message"] = self.message
        if self.resource_model is not None:
            result["resourceModel"] = self.resource_model
        if self.resource_models is not None:
            result["resourceModels"] = self.resource_models
        if self.next_token is not None:
            result["nextToken"] = self.next_token
        return result
