"""
Handler Registry for dispatching actions to per-action handlers.

Resource providers usually implement one handler per lifecycle action.
The registry is itself a ResourceHandler, so the orchestrator dispatches to
it exactly as it would to a single handler.
"""

from typing import Any, Optional

from provocation.errors import TerminalError
from provocation.handlers.base import HandlerFunction, ResourceHandler, as_handler
from provocation.proxy import ClientProxy
from provocation.schemas import Action, ProgressEvent, ResourceHandlerRequest


class HandlerRegistry(ResourceHandler):
    """
    Registry for handler dispatch by action.

    Usage:
        registry = HandlerRegistry()
        registry.register(Action.CREATE, create_handler)
        registry.register(Action.READ, ReadHandler())

        event = registry.invoke(proxy, request, Action.CREATE, None)
    """

    def __init__(self) -> None:
        """Initialize an empty handler registry."""
        self._handlers: dict[Action, ResourceHandler] = {}

    def register(self, action: Action, handler: "ResourceHandler | HandlerFunction") -> None:
        """
        Register a handler for an action.

        Args:
            action: Lifecycle action
            handler: ResourceHandler instance or plain function
        """
        self._handlers[action] = as_handler(handler)

    def get(self, action: Action) -> ResourceHandler:
        """
        Get the handler for an action.

        Raises:
            TerminalError: If no handler is registered for this action
        """
        if action not in self._handlers:
            registered = [a.value for a in self._handlers]
            raise TerminalError(
                f"No handler registered for action: {action.value}. "
                f"Registered: {registered}"
            )
        return self._handlers[action]

    def has(self, action: Action) -> bool:
        return action in self._handlers

    def list_actions(self) -> list[Action]:
        return list(self._handlers.keys())

    def invoke(
        self,
        proxy: Optional[ClientProxy],
        request: ResourceHandlerRequest,
        action: Action,
        callback_context: Optional[dict[str, Any]],
    ) -> ProgressEvent:
        """Dispatch to the handler registered for action."""
        return self.get(action).invoke(proxy, request, action, callback_context)
