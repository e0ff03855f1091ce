"""
Failure classification at the invocation boundary.

Turns heterogeneous failure sources into the closed HandlerErrorCode set plus
a human-readable message. The classified pair, not the raw exception, is what
crosses the callback reporter boundary and lands in the metrics stream.

Classification:
- HandlerError -> its declared code (passed through unchanged)
- ValidationError -> InvalidRequest
- botocore ClientError / BotoCoreError -> GeneralServiceException
- Anything else -> InternalFailure (no string matching)
"""

from botocore.exceptions import BotoCoreError, ClientError

from provocation.errors import HandlerError, ValidationError
from provocation.schemas import HandlerErrorCode
from provocation.utils import sanitize_error_message


def classify_exception(error: BaseException) -> tuple[HandlerErrorCode, str]:
    """
    Map an exception to an error code and message.

    Args:
        error: Exception raised by a handler or collaborator

    Returns:
        Tuple of (HandlerErrorCode, sanitized message)
    """
    if isinstance(error, HandlerError):
        code = error.error_code
    elif isinstance(error, ValidationError):
        code = HandlerErrorCode.INVALID_REQUEST
    elif isinstance(error, (ClientError, BotoCoreError)):
        code = HandlerErrorCode.GENERAL_SERVICE_EXCEPTION
    else:
        code = HandlerErrorCode.INTERNAL_FAILURE

    return code, sanitize_error_message(error) or type(error).__name__


def describe_failure(error: BaseException) -> str:
    """Short label used in log lines for a classified failure."""
    code, _ = classify_exception(error)
    if code == HandlerErrorCode.GENERAL_SERVICE_EXCEPTION:
        return "A downstream service error occurred"
    if code == HandlerErrorCode.INTERNAL_FAILURE:
        return "An unknown error occurred"
    return str(error) or code.value
