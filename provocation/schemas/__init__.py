"""
provocation.schemas - Data model for the invocation runtime.

OperationRequest -> ResourceHandlerRequest -> ProgressEvent -> OrchestratorResponse

Lifecycle:
1. OperationRequest: Parsed from the raw host payload, carries the ResumeContext
2. ResourceHandlerRequest: Subset of the request handed to the handler
3. ProgressEvent: Result of one handler call
4. OrchestratorResponse: Mirror of the final ProgressEvent written to the host
"""

from .action import Action
from .progress import (
    OperationStatus,
    HandlerErrorCode,
    ProgressEvent,
    OrchestratorResponse,
)
from .request import (
    Credentials,
    RequestData,
    ResumeContext,
    OperationRequest,
    ResourceHandlerRequest,
)

__all__ = [
    # Actions
    "Action",
    # Progress
    "OperationStatus",
    "HandlerErrorCode",
    "ProgressEvent",
    "OrchestratorResponse",
    # Requests
    "Credentials",
    "RequestData",
    "ResumeContext",
    "OperationRequest",
    "ResourceHandlerRequest",
]
