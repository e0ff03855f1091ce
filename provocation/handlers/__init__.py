"""
Handlers module for provocation.

A handler implements one capability, invoke(proxy, request, action,
callback_context) -> ProgressEvent. The orchestrator accepts:
- a ResourceHandler subclass
- a plain function with the same signature
- a HandlerRegistry mapping each Action to its own handler

Usage:
    from provocation.handlers import HandlerRegistry

    registry = HandlerRegistry()
    registry.register(Action.CREATE, create_bucket)
    registry.register(Action.DELETE, delete_bucket)
"""

from provocation.handlers.base import FunctionHandler, HandlerFunction, ResourceHandler, as_handler
from provocation.handlers.registry import HandlerRegistry

__all__ = [
    "ResourceHandler",
    "FunctionHandler",
    "HandlerFunction",
    "HandlerRegistry",
    "as_handler",
]
