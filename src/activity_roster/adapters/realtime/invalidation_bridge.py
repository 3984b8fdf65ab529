"""Turns realtime participant events into scheduled invalidations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from activity_roster.domain.models import RealtimeEvent, ViewKey, ViewKind

if TYPE_CHECKING:
    from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol
    from activity_roster.domain.contracts.invalidation_scheduler import (
        InvalidationSchedulerProtocol,
    )
    from activity_roster.domain.contracts.subscription import Subscription
    from activity_roster.domain.ports.realtime_event_source import RealtimeEventSource

logger = logging.getLogger(__name__)


class RealtimeInvalidationBridge:
    """Schedules invalidation of a resource's views when its participants change.

    Events are never applied to the cache as state. They only mark the
    affected views stale so they get refetched from the authoritative service.
    Events arriving within the delay for the same resource collapse into one
    invalidation.
    """

    def __init__(
        self,
        source: RealtimeEventSource,
        store: EntityCacheProtocol,
        scheduler: InvalidationSchedulerProtocol,
        delay_seconds: float = 0.5,
    ) -> None:
        """Initialize the bridge.

        Args:
            source: Where participant events come from.
            store: The cache store, used to find the list views holding a resource.
            scheduler: Receives the invalidations.
            delay_seconds: Batching delay before the invalidation runs.
        """
        self._source = source
        self._store = store
        self._scheduler = scheduler
        self.delay_seconds = delay_seconds
        self._subscription: Subscription | None = None

    @property
    def active(self) -> bool:
        """Whether the bridge is listening."""
        return self._subscription is not None and self._subscription.active

    def start(self, resource_id: str | None = None) -> None:
        """Start listening for events about one resource, or all resources."""
        if self.active:
            return
        self._subscription = self._source.subscribe(self.handle_event, resource_id=resource_id)

    def stop(self) -> None:
        """Stop listening."""
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None

    def handle_event(self, event: RealtimeEvent) -> None:
        """Schedule invalidation of every view showing the event's resource."""
        keys = [
            ViewKey.for_detail(event.resource_id),
            ViewKey.for_participants(event.resource_id),
            *self._store.keys(kind=ViewKind.LIST, resource_id=event.resource_id),
        ]
        logger.debug(
            f"{event.type.value} on {event.resource_id}, invalidating {len(keys)} view(s)"
        )
        self._scheduler.schedule_invalidation(keys, delay=self.delay_seconds)
