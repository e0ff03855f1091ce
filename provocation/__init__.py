"""
provocation - Resumable invocation runtime for long-running resource handlers.

Validates inbound operation requests, dispatches them to a pluggable handler,
reports progress to an external orchestrator, and resumes long-running
operations either in-process or through external re-invocation timers.
"""

__version__ = "0.1.0"


__all__ = [
    "InvocationOrchestrator",
    "ProvocationConfig",
    "load_config",
    "get_provocation_home",
]

from .config import ProvocationConfig, load_config, get_provocation_home
from .orchestrator import InvocationOrchestrator
