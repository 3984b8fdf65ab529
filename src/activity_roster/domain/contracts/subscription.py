"""Protocol for disposable observer subscriptions."""

from typing import Protocol


class Subscription(Protocol):
    """Handle returned by an observer registration."""

    @property
    def active(self) -> bool:
        """Whether the observer is still registered."""
        ...

    def dispose(self) -> None:
        """Unregister the observer. Disposing twice is a no-op."""
        ...
