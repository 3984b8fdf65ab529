"""Protocol for the corruption detector / recovery breaker."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from activity_roster.domain.contracts.subscription import Subscription
    from activity_roster.domain.models import CorruptionCounter, ErrorKind, ForceReloadSignal


class RecoveryBreakerProtocol(Protocol):
    """Protocol for tracking anomalous failures and forcing a hard reset."""

    def record_outcome(self, error_kind: "ErrorKind | None") -> None:
        """Record a fetch outcome.

        Args:
            error_kind: None for success, otherwise the failure classification.
        """
        ...

    def reset(self) -> None:
        """Zero the consecutive timeout counter. Never un-trips the breaker."""
        ...

    def is_tripped(self) -> bool:
        """Check whether the breaker has tripped."""
        ...

    def ensure_trusted(self) -> None:
        """Raise CacheCorruptedError and force a reload if the breaker has tripped."""
        ...

    def state(self) -> "CorruptionCounter":
        """Return a snapshot of the counter."""
        ...

    def on_force_reload(
        self, callback: "Callable[[ForceReloadSignal], None]"
    ) -> "Subscription":
        """Register the host's force-reload handler."""
        ...
