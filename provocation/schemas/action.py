"""
Action enum defining the resource lifecycle operations.

Actions are categorized by how they may complete:
- CREATE, UPDATE, DELETE -> mutating: may be long-running and asynchronous,
  reported to the callback reporter on every cycle
- READ, LIST -> synchronous: must resolve to SUCCESS or FAILED in one call
"""

from enum import Enum


class Action(str, Enum):
    """Enumeration of all valid lifecycle actions."""
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LIST = "LIST"

    @property
    def is_mutating(self) -> bool:
        """Check if this action changes resource state."""
        return self in (Action.CREATE, Action.UPDATE, Action.DELETE)

    @property
    def is_synchronous(self) -> bool:
        """Check if this action must complete within one handler call."""
        return not self.is_mutating

    @classmethod
    def from_string(cls, value: str) -> "Action":
        """Parse an Action from its string value."""
        for action in cls:
            if action.value == value:
                return action
        raise ValueError(f"Unknown action: {value}")
