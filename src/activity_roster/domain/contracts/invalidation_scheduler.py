"""Protocol for scheduling cache invalidations."""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from activity_roster.domain.contracts.task_scheduler import ScheduledTaskProtocol
    from activity_roster.domain.models.view_key import ViewKey


class InvalidationSchedulerProtocol(Protocol):
    """Protocol for debounced, deduplicated cache invalidation."""

    def on_identity_change(self, actor_id: str | None) -> bool:
        """Handle an identity change pushed by the identity provider.

        Args:
            actor_id: The new actor, or None on sign-out.

        Returns:
            True if an invalidation was scheduled, False if the event was dropped.
        """
        ...

    def schedule_invalidation(
        self, keys: "Iterable[ViewKey]", delay: float | None = None
    ) -> "ScheduledTaskProtocol":
        """Schedule invalidation and refetch of views after a delay.

        Args:
            keys: The views to invalidate.
            delay: Seconds to wait; the configured refresh delay if None.

        Returns:
            The pending task. Scheduling the same key set again resets its timer.
        """
        ...

    async def wait_idle(self) -> None:
        """Wait until no invalidation is pending."""
        ...

    def cancel_all(self) -> None:
        """Cancel every pending invalidation."""
        ...
