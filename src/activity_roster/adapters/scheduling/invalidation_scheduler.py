"""Debounced, deduplicated cache invalidation."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from activity_roster.adapters.scheduling.task_scheduler import ScheduledTask, TaskScheduler
from activity_roster.domain.contracts.invalidation_scheduler import InvalidationSchedulerProtocol
from activity_roster.domain.models import ViewKey, ViewKind

if TYPE_CHECKING:
    from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol

logger = logging.getLogger(__name__)

Refresher = Callable[[list[ViewKey]], Awaitable[None]]

IDENTITY_TASK_PREFIX = "identity:"
INVALIDATION_TASK_PREFIX = "invalidate:"


class InvalidationScheduler(InvalidationSchedulerProtocol):
    """Schedules invalidation of cached views and their refetch.

    Identity changes go through a cool-down: the same actor re-announcing
    itself within the window (token refresh, re-render storms) is dropped.
    Accepted identity changes are debounced so authentication can settle
    before actor-dependent views are invalidated.
    """

    def __init__(
        self,
        store: EntityCacheProtocol,
        refresher: Refresher | None = None,
        task_scheduler: TaskScheduler | None = None,
        cooldown_seconds: float = 30.0,
        debounce_seconds: float = 2.0,
        refresh_delay_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: The cache store whose views are invalidated.
            refresher: Coroutine refetching the invalidated views that were cached.
            task_scheduler: Timer backend; a private one if None.
            cooldown_seconds: Window in which the same actor's events are dropped.
            debounce_seconds: Delay before an identity invalidation runs.
            refresh_delay_seconds: Default delay for schedule_invalidation.
            clock: Monotonic time source for the cool-down.
        """
        self._store = store
        self._refresher = refresher
        self._tasks = task_scheduler or TaskScheduler()
        self.cooldown_seconds = cooldown_seconds
        self.debounce_seconds = debounce_seconds
        self.refresh_delay_seconds = refresh_delay_seconds
        self._clock = clock
        self._last_actor_id: str | None = None
        self._last_invalidation_at: float | None = None

    def on_identity_change(self, actor_id: str | None) -> bool:
        """Handle an identity change pushed by the identity provider.

        Args:
            actor_id: The new actor, or None on sign-out.

        Returns:
            True if an invalidation was scheduled, False if the event was dropped.
        """
        if actor_id is None:
            self._last_actor_id = None
            self._last_invalidation_at = None
            cancelled = self._tasks.cancel_all(IDENTITY_TASK_PREFIX)
            logger.info(f"Identity cleared, cancelled {cancelled} pending identity invalidation(s)")
            return False

        now = self._clock()
        if (
            actor_id == self._last_actor_id
            and self._last_invalidation_at is not None
            and now - self._last_invalidation_at < self.cooldown_seconds
        ):
            logger.debug(
                f"Dropped identity change for {actor_id} "
                f"({now - self._last_invalidation_at:.1f}s into {self.cooldown_seconds}s cool-down)"
            )
            return False

        self._last_actor_id = actor_id
        self._last_invalidation_at = now
        self._tasks.schedule(
            f"{IDENTITY_TASK_PREFIX}{actor_id}",
            self.debounce_seconds,
            self._invalidate_actor_dependent_views,
        )
        logger.info(
            f"Scheduled invalidation of actor-dependent views for {actor_id} "
            f"in {self.debounce_seconds}s"
        )
        return True

    def schedule_invalidation(
        self, keys: Iterable[ViewKey], delay: float | None = None
    ) -> ScheduledTask:
        """Schedule invalidation and refetch of views after a delay.

        Args:
            keys: The views to invalidate.
            delay: Seconds to wait; the configured refresh delay if None.

        Returns:
            The pending task. Scheduling the same key set again resets its timer.
        """
        key_list = sorted(set(keys), key=str)
        name = INVALIDATION_TASK_PREFIX + "|".join(str(key) for key in key_list)
        delay = self.refresh_delay_seconds if delay is None else delay
        logger.debug(f"Scheduling invalidation of {len(key_list)} view(s) in {delay}s")
        return self._tasks.schedule(name, delay, lambda: self._invalidate(key_list))

    def is_identity_pending(self, actor_id: str) -> bool:
        """Check whether an identity invalidation is pending for the actor."""
        return self._tasks.is_pending(f"{IDENTITY_TASK_PREFIX}{actor_id}")

    def pending_count(self) -> int:
        """Number of pending invalidations."""
        return len(self._tasks.pending_names())

    async def wait_idle(self) -> None:
        """Wait until no invalidation is pending."""
        await self._tasks.wait_idle()

    def cancel_all(self) -> None:
        """Cancel every pending invalidation."""
        cancelled = self._tasks.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending invalidation(s)")

    async def _invalidate_actor_dependent_views(self) -> None:
        keys = self._store.keys(kind=ViewKind.LIST) + self._store.keys(kind=ViewKind.DETAIL)
        await self._invalidate(keys)

    async def _invalidate(self, keys: list[ViewKey]) -> None:
        invalidated = self._store.invalidate(keys)
        logger.info(f"Invalidated {len(invalidated)} of {len(keys)} requested view(s)")
        if invalidated and self._refresher is not None:
            await self._refresher(invalidated)
