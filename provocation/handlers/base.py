"""
Base handler protocol and common implementations.

A handler is the single capability the orchestrator dispatches to:

    invoke(proxy, request, action, callback_context) -> ProgressEvent

It may raise classified (HandlerError) or unclassified errors; it must not
return None, and for READ/LIST it must not return IN_PROGRESS.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from provocation.proxy import ClientProxy
from provocation.schemas import Action, ProgressEvent, ResourceHandlerRequest

HandlerFunction = Callable[
    [Optional[ClientProxy], ResourceHandlerRequest, Action, Optional[dict[str, Any]]],
    ProgressEvent,
]


class ResourceHandler(ABC):
    """
    Abstract base class for resource handlers.

    Handlers receive the transformed request and the opaque callback context
    of the previous call, and return the resulting ProgressEvent.
    """

    @abstractmethod
    def invoke(
        self,
        proxy: Optional[ClientProxy],
        request: ResourceHandlerRequest,
        action: Action,
        callback_context: Optional[dict[str, Any]],
    ) -> ProgressEvent:
        """
        Run one step of the operation.

        Args:
            proxy: Caller-credential client proxy (None without caller credentials)
            request: Transformed request
            action: Lifecycle action
            callback_context: State returned by the previous call (None on the first)

        Returns:
            The resulting ProgressEvent

        Raises:
            Exception: If the step fails
        """
        pass


class FunctionHandler(ResourceHandler):
    """Adapts a plain function with the invoke signature into a ResourceHandler."""

    def __init__(self, func: HandlerFunction):
        self._func = func

    def invoke(self, proxy, request, action, callback_context) -> ProgressEvent:
        return self._func(proxy, request, action, callback_context)

    def __repr__(self) -> str:
        return f"FunctionHandler({getattr(self._func, '__name__', self._func)!r})"


def as_handler(handler: "ResourceHandler | HandlerFunction") -> ResourceHandler:
    """Accept either a ResourceHandler or a plain function."""
    if isinstance(handler, ResourceHandler):
        return handler
    if callable(handler):
        return FunctionHandler(handler)
    raise TypeError(f"Handler must be a ResourceHandler or callable, got {type(handler).__name__}")
