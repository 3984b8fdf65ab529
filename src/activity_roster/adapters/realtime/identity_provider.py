"""In-process identity provider."""

import logging
from collections.abc import Callable

from activity_roster.adapters.observers import Observable, ObserverSubscription
from activity_roster.domain.ports.identity_provider import IdentityProvider

logger = logging.getLogger(__name__)


class InMemoryIdentityProvider(IdentityProvider):
    """Holds the signed-in actor and pushes every change to subscribers.

    Setting the same actor again still notifies: auth layers re-announce
    identity on token refresh, and it is up to the subscriber to drop repeats.
    """

    def __init__(self, actor_id: str | None = None) -> None:
        """Initialize with an optional signed-in actor."""
        self._actor_id = actor_id
        self._changes: Observable[str | None] = Observable("identity")

    def current_actor_id(self) -> str | None:
        """Get the current actor, or None when signed out."""
        return self._actor_id

    def subscribe(self, callback: Callable[[str | None], None]) -> ObserverSubscription:
        """Register a callback invoked with the new actor on every change."""
        return self._changes.subscribe(callback)

    def set_actor(self, actor_id: str | None) -> None:
        """Sign in as actor_id, or sign out with None."""
        self._actor_id = actor_id
        logger.info(f"Identity changed to {actor_id or '<signed out>'}")
        self._changes.emit(actor_id)

    def sign_out(self) -> None:
        """Clear the current actor."""
        self.set_actor(None)
