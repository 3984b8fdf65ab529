"""Typed observer registry with disposable subscription handles."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObserverSubscription:
    """Handle for one registered observer."""

    def __init__(self, on_dispose: Callable[[ObserverSubscription], None]) -> None:
        """Initialize with the registry's removal callback."""
        self._on_dispose: Callable[[ObserverSubscription], None] | None = on_dispose

    @property
    def active(self) -> bool:
        """Whether the observer is still registered."""
        return self._on_dispose is not None

    def dispose(self) -> None:
        """Unregister the observer. Disposing twice is a no-op."""
        if self._on_dispose is None:
            return
        on_dispose, self._on_dispose = self._on_dispose, None
        on_dispose(self)

    def __enter__(self) -> ObserverSubscription:
        return self

    def __exit__(self, _exc_type: type | None, _exc_val: Exception | None, _exc_tb: object) -> None:
        self.dispose()


class Observable(Generic[T]):
    """Synchronous publish/subscribe over an optional topic.

    Observers registered without a topic receive every emission. A failing
    observer is logged and does not stop delivery to the others.
    """

    def __init__(self, name: str) -> None:
        """Initialize the registry.

        Args:
            name: Name used in log messages.
        """
        self.name = name
        self._observers: dict[
            ObserverSubscription, tuple[Hashable | None, Callable[[T], None]]
        ] = {}

    def subscribe(
        self, callback: Callable[[T], None], topic: Hashable | None = None
    ) -> ObserverSubscription:
        """Register an observer.

        Args:
            callback: Called with each emitted value.
            topic: Restrict delivery to emissions on this topic.

        Returns:
            A subscription handle to dispose when done.
        """
        subscription = ObserverSubscription(self._remove)
        self._observers[subscription] = (topic, callback)
        return subscription

    def _remove(self, subscription: ObserverSubscription) -> None:
        self._observers.pop(subscription, None)

    def has_observers(self, topic: Hashable | None = None, exact: bool = False) -> bool:
        """Check whether anyone listens on a topic.

        Args:
            topic: The topic to check.
            exact: Ignore observers registered for all topics.
        """
        return any(
            t == topic or (t is None and not exact) for t, _ in self._observers.values()
        )

    def emit(self, value: T, topic: Hashable | None = None) -> int:
        """Deliver a value to matching observers.

        Returns:
            Number of observers notified.
        """
        delivered = 0
        for observer_topic, callback in list(self._observers.values()):
            if observer_topic is not None and observer_topic != topic:
                continue
            try:
                callback(value)
                delivered += 1
            except Exception as e:
                logger.error(f"Observer on {self.name} failed: {e}", exc_info=True)
        return delivered

    def __len__(self) -> int:
        return len(self._observers)
