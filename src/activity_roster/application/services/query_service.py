"""Fetch paths that populate the entity cache."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import Counter
from collections.abc import Awaitable, Iterable, Mapping
from typing import TYPE_CHECKING

from activity_roster.application.services.retry_policy import run_with_retries
from activity_roster.domain.errors import CacheCorruptedError, FetchFailedError, RosterError
from activity_roster.domain.models import (
    ErrorKind,
    Ok,
    Participant,
    Resource,
    Result,
    RetryPolicy,
    ViewKey,
    ViewKind,
    ViewValue,
)

if TYPE_CHECKING:
    from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol
    from activity_roster.domain.contracts.recovery_breaker import RecoveryBreakerProtocol
    from activity_roster.domain.ports import IdentityProvider, ResourceService

logger = logging.getLogger(__name__)


class ResourceQueryService:
    """Fetches views from the remote service into the cache.

    Concurrent fetches of the same view share one task. A fetch can be
    superseded by a mutation (cancel_fetches); its awaiters then get the
    cached value and the stale response is never written. Views held by a
    pending mutation (hold_writes) are not overwritten by fetches that start
    while it is in flight.
    """

    def __init__(
        self,
        store: EntityCacheProtocol,
        remote: ResourceService,
        breaker: RecoveryBreakerProtocol,
        identity: IdentityProvider | None = None,
        policy: RetryPolicy | None = None,
        timeout_seconds: float | None = 10.0,
    ) -> None:
        """Initialize the query service.

        Args:
            store: The cache store to populate.
            remote: The authoritative resource service.
            breaker: Recovery breaker observing every fetch outcome.
            identity: Supplies the actor whose perspective list and detail views take.
            policy: Retry policy for fetches.
            timeout_seconds: Latency threshold per attempt.
        """
        self._store = store
        self._remote = remote
        self._breaker = breaker
        self._identity = identity
        self._policy = policy or RetryPolicy()
        self._timeout_seconds = timeout_seconds
        self._in_flight: dict[ViewKey, asyncio.Task] = {}
        self._superseded: weakref.WeakSet[asyncio.Task] = weakref.WeakSet()
        self._held: Counter[ViewKey] = Counter()

    async def fetch_list(self, filters: Mapping[str, object] | None = None) -> tuple[Resource, ...]:
        """Fetch the list view for a filter set."""
        return await self.fetch(ViewKey.for_list(filters))  # type: ignore[return-value]

    async def fetch_detail(self, resource_id: str) -> Resource | None:
        """Fetch the detail view of a resource."""
        return await self.fetch(ViewKey.for_detail(resource_id))  # type: ignore[return-value]

    async def fetch_participants(self, resource_id: str) -> tuple[Participant, ...]:
        """Fetch the participant view of a resource."""
        return await self.fetch(ViewKey.for_participants(resource_id))  # type: ignore[return-value]

    async def fetch(self, key: ViewKey) -> ViewValue | None:
        """Fetch a view and store it.

        Returns:
            The fetched value, or the cached value if a mutation superseded the fetch.

        Raises:
            CacheCorruptedError: The recovery breaker has tripped.
            FetchFailedError: Retries were exhausted.
        """
        self._breaker.ensure_trusted()

        task = self._in_flight.get(key)
        if task is None or task.done():
            task = asyncio.create_task(self._fetch_and_store(key), name=f"fetch:{key}")
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            logger.debug(f"Joining in-flight fetch of {key}")

        try:
            return await task
        except asyncio.CancelledError:
            if task in self._superseded:
                logger.debug(f"Fetch of {key} superseded by a mutation, returning cached value")
                return self._store.read(key)
            raise

    async def refresh(self, keys: Iterable[ViewKey]) -> None:
        """Refetch views in the background, logging failures instead of raising."""
        for key in keys:
            try:
                await self.fetch(key)
            except CacheCorruptedError:
                logger.error("Stopping refresh: cache is no longer trusted")
                return
            except RosterError as e:
                logger.warning(f"Background refresh of {key} failed: {e}")

    def cancel_fetches(self, keys: Iterable[ViewKey]) -> int:
        """Cancel in-flight fetches of the given views.

        Returns:
            Number of fetches cancelled.
        """
        cancelled = 0
        for key in keys:
            task = self._in_flight.pop(key, None)
            if task is None or task.done():
                continue
            self._superseded.add(task)
            task.cancel()
            cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} in-flight fetch(es)")
        return cancelled

    def hold_writes(self, keys: Iterable[ViewKey]) -> None:
        """Keep fetch results from overwriting the views until release_writes."""
        self._held.update(list(keys))

    def release_writes(self, keys: Iterable[ViewKey]) -> None:
        """Undo one hold_writes call for the views."""
        self._held.subtract(list(keys))
        self._held += Counter()

    def is_held(self, key: ViewKey) -> bool:
        """Check whether a pending mutation holds the view."""
        return self._held[key] > 0

    def is_fetching(self, key: ViewKey) -> bool:
        """Check whether a fetch of the view is in flight."""
        task = self._in_flight.get(key)
        return task is not None and not task.done()

    def _forget(self, key: ViewKey, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch_and_store(self, key: ViewKey) -> ViewValue:
        actor_id = self._identity.current_actor_id() if self._identity is not None else None
        result, attempts = await run_with_retries(
            lambda: self._request(key, actor_id),
            self._policy,
            self._timeout_seconds,
            on_failure=self._record_failure,
            label=f"fetch {key}",
        )

        if isinstance(result, Ok):
            self._breaker.record_outcome(None)
            if self.is_held(key):
                logger.debug(f"Discarding fetch of {key}: a mutation holds the view")
                return self._store.read(key)  # type: ignore[return-value]
            self._store.replace(key, result.value)
            logger.debug(f"Fetched {key} in {attempts} attempt(s)")
            return result.value

        self._store.set_error(key, result.error)
        raise FetchFailedError(key, result.error)

    def _record_failure(self, kind: ErrorKind) -> None:
        self._breaker.record_outcome(kind)
        if self._breaker.is_tripped():
            raise CacheCorruptedError("Recovery breaker tripped during fetch")

    def _request(self, key: ViewKey, actor_id: str | None) -> Awaitable[Result[ViewValue]]:
        if key.kind is ViewKind.LIST:
            return self._remote.fetch_list(key.filters, actor_id=actor_id)
        if key.kind is ViewKind.DETAIL:
            return self._remote.fetch_detail(key.resource_id or "", actor_id=actor_id)
        return self._remote.fetch_participants(key.resource_id or "")
