"""In-memory entity cache store for resource views."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import TYPE_CHECKING

from activity_roster.adapters.observers import Observable, ObserverSubscription
from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol
from activity_roster.domain.models import CacheEntry, ViewKey, ViewKind

if TYPE_CHECKING:
    from activity_roster.domain.models import RemoteError, ViewSnapshot, ViewValue

logger = logging.getLogger(__name__)


class EntityCacheStore(EntityCacheProtocol):
    """Synchronous keyed storage for list, detail and participant views.

    No method awaits, so a caller's read-modify-write can never interleave
    with another coroutine's. Values are immutable; a snapshot therefore
    shares entries with the store instead of copying them.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Monotonic time source used for entry timestamps.
        """
        self._clock = clock
        self._entries: dict[ViewKey, CacheEntry] = {}
        self._changes: Observable[tuple[ViewKey, ViewValue | None]] = Observable("entity-cache")

    def read(self, key: ViewKey) -> ViewValue | None:
        """Get the cached value of a view.

        Args:
            key: The view key.

        Returns:
            The cached value, or None if the view is absent.
        """
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def entry(self, key: ViewKey) -> CacheEntry | None:
        """Get the cached entry (value plus metadata) of a view."""
        return self._entries.get(key)

    def write(
        self,
        key: ViewKey,
        transformer: Callable[[ViewValue | None], ViewValue | None],
    ) -> ViewValue | None:
        """Apply a pure transformer to the current value and store the result.

        Args:
            key: The view key.
            transformer: Function of the current value (or None). Returning None
                leaves the view unchanged.

        Returns:
            The value stored after the write.
        """
        current = self._entries.get(key)
        new_value = transformer(current.value if current is not None else None)
        if new_value is None:
            return current.value if current is not None else None
        if current is not None and new_value == current.value:
            return current.value

        now = self._clock()
        if current is None:
            self._entries[key] = CacheEntry(value=new_value, updated_at=now)
        else:
            self._entries[key] = current.with_value(new_value, now)
        self._notify(key, new_value)
        return new_value

    def replace(self, key: ViewKey, value: ViewValue) -> None:
        """Store an authoritative value, clearing error and invalidation state."""
        self._entries[key] = CacheEntry(value=value, updated_at=self._clock())
        logger.debug(f"Replaced cached view {key}")
        self._notify(key, value)

    def snapshot(self, keys: Iterable[ViewKey]) -> ViewSnapshot:
        """Capture several views at once for a later restore.

        Keys that are absent are captured as None so restore removes them.
        """
        return {key: self._entries.get(key) for key in keys}

    def restore(self, snapshot: ViewSnapshot) -> None:
        """Replace the captured views wholesale."""
        for key, captured in snapshot.items():
            current = self._entries.get(key)
            if captured is None:
                if current is None:
                    continue
                del self._entries[key]
                self._notify(key, None)
            elif current is not captured:
                self._entries[key] = captured
                self._notify(key, captured.value)
        logger.debug(f"Restored {len(snapshot)} cached view(s) from snapshot")

    def keys(self, kind: ViewKind | None = None, resource_id: str | None = None) -> list[ViewKey]:
        """Select cached view keys by kind and resource id.

        A resource id selects its detail and participant views, plus every
        list view that contains the resource.
        """
        selected: list[ViewKey] = []
        for key in self._entries:
            if kind is not None and key.kind is not kind:
                continue
            if resource_id is not None and not self._key_covers(key, resource_id):
                continue
            selected.append(key)
        return selected

    def _key_covers(self, key: ViewKey, resource_id: str) -> bool:
        if key.kind is ViewKind.LIST:
            value = self._entries[key].value
            return isinstance(value, tuple) and any(
                getattr(item, "id", None) == resource_id for item in value
            )
        return key.resource_id == resource_id

    def invalidate(self, keys: Iterable[ViewKey]) -> list[ViewKey]:
        """Mark views as stale and return those that were cached."""
        invalidated = []
        for key in keys:
            current = self._entries.get(key)
            if current is None:
                continue
            self._entries[key] = replace(current, is_invalidated=True)
            invalidated.append(key)
        if invalidated:
            logger.debug(f"Invalidated {len(invalidated)} cached view(s)")
        return invalidated

    def set_error(self, key: ViewKey, error: RemoteError) -> None:
        """Record a per-view fetch error, keeping the last good value."""
        current = self._entries.get(key)
        if current is None:
            return
        self._entries[key] = replace(current, error=error)

    def clear(self) -> None:
        """Remove every cached view."""
        removed = list(self._entries)
        self._entries.clear()
        logger.info(f"Cleared entity cache ({len(removed)} view(s))")
        for key in removed:
            self._notify(key, None)

    def evict_expired(self, max_age_seconds: float, now: float | None = None) -> int:
        """Evict views that nobody observes and that are older than max_age_seconds.

        Returns:
            Number of views evicted.
        """
        now = self._clock() if now is None else now
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.updated_at > max_age_seconds
            and not self._changes.has_observers(key, exact=True)
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired view(s)")
        return len(expired)

    def subscribe(
        self,
        callback: Callable[[ViewKey, ViewValue | None], None],
        key: ViewKey | None = None,
    ) -> ObserverSubscription:
        """Register an observer for changes to one view or all views."""
        return self._changes.subscribe(lambda change: callback(*change), topic=key)

    def _notify(self, key: ViewKey, value: ViewValue | None) -> None:
        self._changes.emit((key, value), topic=key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
