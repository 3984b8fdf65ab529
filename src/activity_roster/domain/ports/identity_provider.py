"""Identity provider port."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from activity_roster.domain.contracts.subscription import Subscription


class IdentityProvider(Protocol):
    """Port supplying the current actor and pushing identity changes."""

    def current_actor_id(self) -> str | None:
        """Get the current actor, or None when signed out."""
        ...

    def subscribe(self, callback: Callable[[str | None], None]) -> "Subscription":
        """Register a callback invoked with the new actor on every change."""
        ...
