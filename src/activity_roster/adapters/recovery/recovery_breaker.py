"""Corruption detector and recovery breaker."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from activity_roster.adapters.observers import Observable, ObserverSubscription
from activity_roster.domain.contracts.recovery_breaker import RecoveryBreakerProtocol
from activity_roster.domain.errors import CacheCorruptedError
from activity_roster.domain.models import CorruptionCounter, ErrorKind, ForceReloadSignal

if TYPE_CHECKING:
    from activity_roster.domain.contracts.counter_store import CounterStoreProtocol
    from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol

logger = logging.getLogger(__name__)

TIMEOUT_COUNTER = "consecutive_timeouts"


class RecoveryBreaker(RecoveryBreakerProtocol):
    """Trips after consecutive timeouts and forces a full reload.

    Repeated timeouts are taken as a sign that cached or persisted state is
    corrupt. Once tripped the breaker stays tripped for the life of the
    process: it wipes the cache, clears the durable counter and tells the
    host to reload. Every later operation that checks ensure_trusted() wipes
    again and re-emits the signal instead of running.
    """

    def __init__(
        self,
        store: EntityCacheProtocol,
        counter_store: CounterStoreProtocol,
        threshold: int = 2,
    ) -> None:
        """Initialize the breaker.

        Args:
            store: The cache store to wipe on trip.
            counter_store: Where the consecutive timeout count is kept.
            threshold: Consecutive timeouts that trip the breaker.
        """
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._store = store
        self._counters = counter_store
        self.threshold = threshold
        self._tripped = False
        self._signals: Observable[ForceReloadSignal] = Observable("force-reload")

    @property
    def consecutive_timeouts(self) -> int:
        """Current consecutive timeout count (possibly carried over from a previous run)."""
        return self._counters.get(TIMEOUT_COUNTER)

    def record_outcome(self, error_kind: ErrorKind | None) -> None:
        """Record a fetch outcome.

        Args:
            error_kind: None for success, otherwise the failure classification.
                Only timeouts count; other failures leave the counter alone.
        """
        if error_kind is None:
            self.reset()
            return
        if error_kind is not ErrorKind.TIMEOUT:
            return

        count = self.consecutive_timeouts + 1
        self._counters.set(TIMEOUT_COUNTER, count)
        logger.warning(f"Timeout recorded ({count}/{self.threshold} before forced reload)")
        if count >= self.threshold and not self._tripped:
            self._trip(count)

    def reset(self) -> None:
        """Zero the consecutive timeout counter. Never un-trips the breaker."""
        if self.consecutive_timeouts:
            logger.debug("Resetting consecutive timeout counter")
            self._counters.set(TIMEOUT_COUNTER, 0)

    def is_tripped(self) -> bool:
        """Check whether the breaker has tripped."""
        return self._tripped

    def ensure_trusted(self) -> None:
        """Raise CacheCorruptedError and force a reload if the breaker has tripped."""
        if not self._tripped:
            return
        self._store.clear()
        self._emit("Cache is not trusted after repeated timeouts", self.threshold)
        raise CacheCorruptedError("Recovery breaker tripped; a full reload is required")

    def state(self) -> CorruptionCounter:
        """Return a snapshot of the counter."""
        return CorruptionCounter(
            consecutive_timeouts=self.consecutive_timeouts,
            threshold=self.threshold,
            tripped=self._tripped,
        )

    def on_force_reload(
        self, callback: Callable[[ForceReloadSignal], None]
    ) -> ObserverSubscription:
        """Register the host's force-reload handler."""
        return self._signals.subscribe(callback)

    def _trip(self, count: int) -> None:
        self._tripped = True
        logger.error(
            f"Recovery breaker tripped after {count} consecutive timeouts; "
            "wiping cache and forcing a full reload"
        )
        self._store.clear()
        self._counters.clear()
        self._emit(f"{count} consecutive timeouts", count)

    def _emit(self, reason: str, count: int) -> None:
        signal = ForceReloadSignal(
            reason=reason,
            consecutive_timeouts=count,
            emitted_at=datetime.now(UTC),
        )
        delivered = self._signals.emit(signal)
        if not delivered:
            logger.warning("Force reload requested but no host handler is registered")
