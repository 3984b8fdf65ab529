"""Realtime event source port."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from activity_roster.domain.models.realtime_event import RealtimeEvent

if TYPE_CHECKING:
    from activity_roster.domain.contracts.subscription import Subscription


class RealtimeEventSource(Protocol):
    """Port for participant change notifications."""

    def subscribe(
        self, callback: Callable[[RealtimeEvent], None], resource_id: str | None = None
    ) -> "Subscription":
        """Register for events about one resource, or all resources if None."""
        ...
