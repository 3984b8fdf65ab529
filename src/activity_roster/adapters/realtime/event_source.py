"""In-process realtime event source."""

import logging
from collections.abc import Callable

from activity_roster.adapters.observers import Observable, ObserverSubscription
from activity_roster.domain.models import RealtimeEvent
from activity_roster.domain.ports.realtime_event_source import RealtimeEventSource

logger = logging.getLogger(__name__)


class InMemoryRealtimeEventSource(RealtimeEventSource):
    """Delivers participant change events to subscribers in the same process."""

    def __init__(self) -> None:
        """Initialize the source."""
        self._events: Observable[RealtimeEvent] = Observable("realtime-events")

    def subscribe(
        self, callback: Callable[[RealtimeEvent], None], resource_id: str | None = None
    ) -> ObserverSubscription:
        """Register for events about one resource, or all resources if None."""
        return self._events.subscribe(callback, topic=resource_id)

    def publish(self, event: RealtimeEvent) -> int:
        """Push an event to subscribers.

        Returns:
            Number of subscribers notified.
        """
        logger.debug(f"Realtime {event.type.value} for {event.resource_id}")
        return self._events.emit(event, topic=event.resource_id)
