"""Background garbage collection of expired cache views."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from activity_roster.adapters.cache.entity_cache_store import EntityCacheStore

logger = logging.getLogger(__name__)


class CacheGarbageCollector:
    """Periodically evicts views that nobody observes and that have expired."""

    def __init__(
        self,
        store: EntityCacheStore,
        gc_time_seconds: float,
        interval_seconds: float,
    ) -> None:
        """Initialize the collector.

        Args:
            store: The cache store to collect.
            gc_time_seconds: Age after which an unobserved view is evicted.
            interval_seconds: Seconds between collection passes.
        """
        self.store = store
        self.gc_time_seconds = gc_time_seconds
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        """Whether the collection loop is running."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the collection loop."""
        if self.running:
            logger.warning("Cache garbage collector already running")
            return

        self._task = asyncio.create_task(self._collect_loop())
        logger.info(
            f"Started cache garbage collector (gc time {self.gc_time_seconds}s, "
            f"every {self.interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the collection loop."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Cache garbage collector cancelled")
            logger.info("Stopped cache garbage collector")

    def collect(self) -> int:
        """Run one collection pass.

        Returns:
            Number of views evicted.
        """
        return self.store.evict_expired(self.gc_time_seconds)

    async def _collect_loop(self) -> None:
        """Main collection loop."""
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    evicted = self.collect()
                    if evicted:
                        logger.info(f"Garbage collector evicted {evicted} view(s)")
                except Exception as e:
                    logger.error(f"Cache garbage collection failed: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Cache garbage collector cancelled")
            raise
