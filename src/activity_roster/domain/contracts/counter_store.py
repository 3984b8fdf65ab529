"""Protocol for the durable-but-best-effort counter store."""

from typing import Protocol


class CounterStoreProtocol(Protocol):
    """Protocol for named integer counters that may outlive the process."""

    def get(self, name: str) -> int:
        """Get a counter value, 0 if unset."""
        ...

    def set(self, name: str, value: int) -> None:
        """Set a counter value."""
        ...

    def clear(self) -> None:
        """Remove every counter."""
        ...
