"""
Client proxy handed to handlers.

Handlers talk to downstream services with the caller's credentials, never
with the platform credentials used for callbacks and scheduling.
"""

from typing import Any, Optional

from provocation.budget import TimeBudget
from provocation.credentials import SessionCredentialsProvider
from provocation.schemas import Credentials


class ClientProxy:
    """
    Caller-credential client factory plus a view of the remaining budget.

    Attributes:
        first_invocation: True when this is invocation 0 of the operation
    """

    def __init__(
        self,
        credentials: Credentials,
        budget: TimeBudget,
        region: Optional[str] = None,
        first_invocation: bool = True,
    ):
        self._provider = SessionCredentialsProvider(region=region)
        self._provider.set_credentials(credentials)
        self._budget = budget
        self._clients: dict[str, Any] = {}
        self.first_invocation = first_invocation

    def client(self, service_name: str) -> Any:
        """Get (and cache) a boto3 client for service_name."""
        if service_name not in self._clients:
            self._clients[service_name] = self._provider.client(service_name)
        return self._clients[service_name]

    def remaining_millis(self) -> int:
        return self._budget.remaining_millis()
