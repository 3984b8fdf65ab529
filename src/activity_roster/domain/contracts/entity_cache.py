"""Protocol for the entity cache store."""

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from activity_roster.domain.contracts.subscription import Subscription
    from activity_roster.domain.models import (
        CacheEntry,
        RemoteError,
        ViewKey,
        ViewKind,
        ViewSnapshot,
        ViewValue,
    )


class EntityCacheProtocol(Protocol):
    """Protocol for synchronous keyed storage of resource views."""

    def read(self, key: "ViewKey") -> "ViewValue | None":
        """Get the cached value of a view.

        Args:
            key: The view key.

        Returns:
            The cached value, or None if the view is absent.
        """
        ...

    def entry(self, key: "ViewKey") -> "CacheEntry | None":
        """Get the cached entry (value plus metadata) of a view."""
        ...

    def write(
        self,
        key: "ViewKey",
        transformer: "Callable[[ViewValue | None], ViewValue | None]",
    ) -> "ViewValue | None":
        """Apply a pure transformer to the current value and store the result.

        Args:
            key: The view key.
            transformer: Function of the current value (or None). Returning None
                leaves the view unchanged.

        Returns:
            The value stored after the write.
        """
        ...

    def replace(self, key: "ViewKey", value: "ViewValue") -> None:
        """Store an authoritative value, clearing error and invalidation state."""
        ...

    def snapshot(self, keys: "Iterable[ViewKey]") -> "ViewSnapshot":
        """Capture several views at once for a later restore."""
        ...

    def restore(self, snapshot: "ViewSnapshot") -> None:
        """Replace the captured views wholesale."""
        ...

    def keys(
        self, kind: "ViewKind | None" = None, resource_id: str | None = None
    ) -> "list[ViewKey]":
        """Select cached view keys by kind and resource id."""
        ...

    def invalidate(self, keys: "Iterable[ViewKey]") -> list["ViewKey"]:
        """Mark views as stale and return those that were cached."""
        ...

    def set_error(self, key: "ViewKey", error: "RemoteError") -> None:
        """Record a per-view fetch error."""
        ...

    def clear(self) -> None:
        """Remove every cached view."""
        ...

    def subscribe(
        self,
        callback: "Callable[[ViewKey, ViewValue | None], None]",
        key: "ViewKey | None" = None,
    ) -> "Subscription":
        """Register an observer for changes to one view or all views."""
        ...
