"""
Error classes for provocation invocations.

These error types let the orchestrator classify failures at the invocation
boundary:
- TerminalError: Host input or runtime contract broken, never retried
- ValidationError: Resource model does not conform to the resource schema
- HandlerError: Raised by handlers with a declared HandlerErrorCode, passed
  through to the callback reporter unchanged
- SchedulingError: Re-invocation timer could not be registered

Handlers raise these errors to signal a classified outcome.
The orchestrator catches at the boundary and converts them to ProgressEvents.

Error handling contract:
- Handlers return ProgressEvents for expected outcomes
- Errors are exceptions, not values, until the orchestrator boundary
- Nothing escapes handle() as a raw exception
"""

from typing import Optional

from provocation.schemas.progress import HandlerErrorCode


class ProvocationError(Exception):
    """Base exception for provocation."""
    pass


class TerminalError(ProvocationError):
    """
    Terminal error - do not retry.

    Examples:
    - No request object received
    - Missing callback endpoint or platform credentials
    - Handler returned no ProgressEvent
    - READ/LIST handler returned IN_PROGRESS

    Reported to the host as FAILED with InternalFailure.
    """
    pass


class SchedulingError(ProvocationError):
    """Re-invocation timer could not be registered or cleaned up."""
    pass


class FileScrubError(ProvocationError):
    """Temp directory could not be scrubbed before the invocation."""
    pass


class ValidationError(ProvocationError):
    """
    Resource model failed schema validation.

    Carries the schema pointer of the failing keyword and any causing
    violations so the full message can be surfaced to the caller.
    """

    def __init__(
        self,
        message: str,
        keyword: Optional[str] = None,
        schema_pointer: str = "#",
        causes: Optional[list["ValidationError"]] = None,
    ):
        super().__init__(message)
        self.keyword = keyword
        self.schema_pointer = schema_pointer
        self.causes = list(causes or [])

    def full_message(self) -> str:
        """Join this error and its causes into one message."""
        parts = [str(self)] if str(self) else []
        for cause in self.causes:
            parts.append(f"{cause} ({cause.schema_pointer})")
        return "\n".join(parts)


class HandlerError(ProvocationError):
    """
    Classified handler failure.

    Subclasses declare the HandlerErrorCode that is reported to the
    external orchestrator. Handlers may also raise HandlerError directly
    with an explicit code.
    """

    error_code: HandlerErrorCode = HandlerErrorCode.INTERNAL_FAILURE

    def __init__(self, message: str = "", error_code: Optional[HandlerErrorCode] = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class NotUpdatableError(HandlerError):
    error_code = HandlerErrorCode.NOT_UPDATABLE


class InvalidRequestError(HandlerError):
    error_code = HandlerErrorCode.INVALID_REQUEST


class AccessDeniedError(HandlerError):
    error_code = HandlerErrorCode.ACCESS_DENIED


class InvalidCredentialsError(HandlerError):
    error_code = HandlerErrorCode.INVALID_CREDENTIALS


class AlreadyExistsError(HandlerError):
    error_code = HandlerErrorCode.ALREADY_EXISTS


class NotFoundError(HandlerError):
    error_code = HandlerErrorCode.NOT_FOUND


class ResourceConflictError(HandlerError):
    error_code = HandlerErrorCode.RESOURCE_CONFLICT


class ThrottlingError(HandlerError):
    error_code = HandlerErrorCode.THROTTLING


class ServiceLimitExceededError(HandlerError):
    error_code = HandlerErrorCode.SERVICE_LIMIT_EXCEEDED


class NotStabilizedError(HandlerError):
    error_code = HandlerErrorCode.NOT_STABILIZED


class GeneralServiceError(HandlerError):
    error_code = HandlerErrorCode.GENERAL_SERVICE_EXCEPTION


class ServiceInternalError(HandlerError):
    error_code = HandlerErrorCode.SERVICE_INTERNAL_ERROR


class NetworkFailureError(HandlerError):
    error_code = HandlerErrorCode.NETWORK_FAILURE
